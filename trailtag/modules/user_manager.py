"""
User Manager Module - TrailTag

This module handles user administration for admins and the parent/student
monitoring links used by parents.

Features:
- Admin user creation, listing with filters and pagination
- User updates with role and email validation
- User deletion (soft when the user has history)
- Student search for parents
- Parent/student link management
"""

from typing import Dict, List, Any, Optional
import logging
import math

from trailtag.modules.auth_manager import USER_TYPES, PUBLIC_USER_FIELDS
from trailtag.modules.database_manager import to_flag


class UserManager:
    """
    User and parent/student relationship management.
    """

    def __init__(self, database_manager, auth_manager):
        """
        Initialize the user manager.

        Args:
            database_manager: Database manager instance
            auth_manager: Authentication manager used for account creation
        """
        self.db = database_manager
        self.auth = auth_manager
        self.logger = logging.getLogger(__name__)

        self.UPDATABLE_FIELDS = ['full_name', 'email', 'phone', 'address', 'user_type',
                                 'timezone', 'language', 'is_active']

    def create_user(self, user_data: Dict[str, Any], created_by: int = None) -> Dict[str, Any]:
        """
        Create a user account on behalf of an admin.

        Args:
            user_data (Dict[str, Any]): Same fields as registration
            created_by (int): ID of the admin creating the account

        Returns:
            Dict[str, Any]: Creation result
        """
        result = self.auth.register_user(user_data, allowed_types=USER_TYPES)
        if result['success']:
            self.logger.info(f"User {result['user']['id']} created by admin {created_by}")
            result['message'] = 'User created successfully'
        return result

    def get_users(self, user_type: str = None, page: int = 1, limit: int = 50) -> Dict[str, Any]:
        """
        Get users, newest first, with optional role filter and pagination.

        Args:
            user_type (str): Filter by role
            page (int): 1-based page number
            limit (int): Page size

        Returns:
            Dict[str, Any]: users and pagination info
        """
        page = max(page, 1)
        limit = max(limit, 1)
        offset = (page - 1) * limit

        where_clause = ""
        params = []
        if user_type:
            where_clause = "WHERE user_type = ?"
            params.append(user_type)

        users = self.db.execute_query(
            f"""SELECT {PUBLIC_USER_FIELDS} FROM users {where_clause}
                ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?""",
            params + [limit, offset]
        )
        total = self.db.execute_query(
            f"SELECT COUNT(*) as total FROM users {where_clause}",
            params,
            fetch_all=False
        )['total']

        return {
            'users': users,
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': math.ceil(total / limit)
            }
        }

    def get_user_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        return self.auth.get_user_public(user_id)

    def update_user(self, user_id: int, update_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update user information.

        Args:
            user_id (int): User ID
            update_data (Dict[str, Any]): Updated fields

        Returns:
            Dict[str, Any]: Update result
        """
        if not self.get_user_by_id(user_id):
            return {
                'success': False,
                'error': 'User not found',
                'error_type': 'not_found'
            }

        updates = {field: update_data[field] for field in self.UPDATABLE_FIELDS if field in update_data}
        if not updates:
            return {
                'success': False,
                'error': 'No valid fields to update',
                'error_type': 'validation_error'
            }

        if 'user_type' in updates and updates['user_type'] not in USER_TYPES:
            return {
                'success': False,
                'error': 'Invalid user type',
                'error_type': 'validation_error'
            }

        if updates.get('email'):
            existing = self.db.execute_query(
                "SELECT id FROM users WHERE email = ? AND id != ?",
                (updates['email'], user_id),
                fetch_all=False
            )
            if existing:
                return {
                    'success': False,
                    'error': 'Email already exists',
                    'error_type': 'conflict'
                }

        if 'is_active' in updates:
            updates['is_active'] = to_flag(updates['is_active'])
            if updates['is_active'] is None:
                return {
                    'success': False,
                    'error': 'is_active must be a boolean',
                    'error_type': 'validation_error'
                }

        set_clause = ', '.join(f"{field} = ?" for field in updates)
        self.db.execute_update(
            f"UPDATE users SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            list(updates.values()) + [user_id]
        )

        if updates.get('is_active') == 0:
            self.auth.revoke_user_sessions(user_id)

        self.logger.info(f"User {user_id} updated successfully")
        return {
            'success': True,
            'user': self.get_user_by_id(user_id),
            'message': 'User updated successfully'
        }

    def delete_user(self, user_id: int, deleted_by: int = None) -> Dict[str, Any]:
        """
        Delete a user account.

        Users with check-ins or programs are deactivated instead of removed.

        Args:
            user_id (int): User ID
            deleted_by (int): ID of the admin deleting the account

        Returns:
            Dict[str, Any]: Deletion result
        """
        if not self.get_user_by_id(user_id):
            return {
                'success': False,
                'error': 'User not found',
                'error_type': 'not_found'
            }

        if user_id == deleted_by:
            return {
                'success': False,
                'error': 'Cannot delete your own account',
                'error_type': 'validation_error'
            }

        history = self.db.execute_query(
            """SELECT (SELECT COUNT(*) FROM check_ins WHERE student_id = ?) +
                      (SELECT COUNT(*) FROM learning_programs WHERE created_by = ?) as count""",
            (user_id, user_id),
            fetch_all=False
        )

        if history['count'] > 0:
            self.db.execute_update(
                "UPDATE users SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (user_id,)
            )
            self.db.execute_update(
                "DELETE FROM parent_student_relationships WHERE parent_id = ? OR student_id = ?",
                (user_id, user_id)
            )
            self.auth.revoke_user_sessions(user_id)
        else:
            self.db.execute_update("DELETE FROM users WHERE id = ?", (user_id,))

        self.logger.info(f"User {user_id} deleted by user {deleted_by}")
        return {
            'success': True,
            'message': 'User deleted successfully'
        }

    def search_students(self, name: str = None, phone: str = None) -> List[Dict[str, Any]]:
        """
        Search active students by name and/or phone.

        Args:
            name (str): Partial full name
            phone (str): Partial phone number

        Returns:
            List[Dict[str, Any]]: Matching students
        """
        conditions = []
        params = []
        if name:
            conditions.append("full_name LIKE ?")
            params.append(f"%{name}%")
        if phone:
            conditions.append("phone LIKE ?")
            params.append(f"%{phone}%")
        if not conditions:
            return []

        return self.db.execute_query(
            f"""SELECT id, username, full_name, email, phone
                FROM users
                WHERE user_type = 'student' AND is_active = 1 AND ({' OR '.join(conditions)})
                ORDER BY full_name""",
            params
        )

    def get_linked_students(self, parent_id: int) -> List[Dict[str, Any]]:
        """Get the students a parent monitors."""
        return self.db.execute_query(
            """SELECT u.id, u.username, u.full_name, u.email, u.phone, psr.relationship_type
               FROM users u
               JOIN parent_student_relationships psr ON u.id = psr.student_id
               WHERE psr.parent_id = ? AND u.user_type = 'student'
               ORDER BY u.full_name""",
            (parent_id,)
        )

    def link_student(self, parent_id: int, student_id: int,
                     relationship_type: str = 'parent') -> Dict[str, Any]:
        """
        Add a student to a parent's monitoring list.

        Args:
            parent_id (int): Parent user ID
            student_id (int): Student user ID
            relationship_type (str): Relationship label

        Returns:
            Dict[str, Any]: Link result
        """
        if not student_id:
            return {
                'success': False,
                'error': 'Student ID is required',
                'error_type': 'validation_error'
            }

        student = self.db.execute_query(
            "SELECT id FROM users WHERE id = ? AND user_type = 'student' AND is_active = 1",
            (student_id,),
            fetch_all=False
        )
        if not student:
            return {
                'success': False,
                'error': 'Student not found',
                'error_type': 'not_found'
            }

        if self.is_linked(parent_id, student_id):
            return {
                'success': False,
                'error': 'Student is already in your monitoring list',
                'error_type': 'conflict'
            }

        self.db.execute_update(
            """INSERT INTO parent_student_relationships (parent_id, student_id, relationship_type)
               VALUES (?, ?, ?)""",
            (parent_id, student_id, relationship_type or 'parent')
        )
        self.logger.info(f"Parent {parent_id} linked to student {student_id}")
        return {
            'success': True,
            'message': 'Student added to monitoring list successfully'
        }

    def unlink_student(self, parent_id: int, student_id: int) -> Dict[str, Any]:
        """Remove a student from a parent's monitoring list."""
        affected_rows = self.db.execute_update(
            "DELETE FROM parent_student_relationships WHERE parent_id = ? AND student_id = ?",
            (parent_id, student_id)
        )
        if affected_rows == 0:
            return {
                'success': False,
                'error': 'Student not found in your monitoring list',
                'error_type': 'not_found'
            }

        self.logger.info(f"Parent {parent_id} unlinked from student {student_id}")
        return {
            'success': True,
            'message': 'Student removed from monitoring list successfully'
        }

    def is_linked(self, parent_id: int, student_id: int) -> bool:
        result = self.db.execute_query(
            "SELECT id FROM parent_student_relationships WHERE parent_id = ? AND student_id = ?",
            (parent_id, student_id),
            fetch_all=False
        )
        return result is not None
