"""
Program Manager Module - TrailTag

This module handles learning program administration: creation, updates,
soft deletion, listing, search and per-program participation statistics.
"""

from typing import Dict, List, Any, Optional
import logging

PROGRAM_SELECT = """
    SELECT lp.*, u.full_name as creator_name
    FROM learning_programs lp
    JOIN users u ON lp.created_by = u.id
"""

class ProgramManager:
    """
    Learning program management for TrailTag.
    """

    def __init__(self, database_manager):
        """
        Initialize the program manager with database connection.

        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

        self.UPDATABLE_FIELDS = ['name', 'description', 'location', 'start_datetime', 'end_datetime']

    def create_program(self, program_data: Dict[str, Any], created_by: int) -> Dict[str, Any]:
        """
        Create a new learning program.

        Args:
            program_data (Dict[str, Any]): name, description, location, start/end datetimes
            created_by (int): ID of the admin creating the program

        Returns:
            Dict[str, Any]: Creation result
        """
        name = (program_data.get('name') or '').strip()
        if not name:
            return {
                'success': False,
                'error': 'Program name is required',
                'error_type': 'validation_error'
            }

        try:
            program_id = self.db.execute_update(
                """INSERT INTO learning_programs (name, description, location, start_datetime,
                                                  end_datetime, created_by)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    name,
                    program_data.get('description') or '',
                    program_data.get('location') or '',
                    program_data.get('start_datetime'),
                    program_data.get('end_datetime'),
                    created_by
                )
            )

            self.logger.info(f"Program created successfully: {name} (ID: {program_id})")
            return {
                'success': True,
                'program': self.get_program_by_id(program_id),
                'message': 'Program created successfully'
            }

        except Exception as e:
            self.logger.error(f"Program creation failed for {name}: {str(e)}")
            return {
                'success': False,
                'error': 'Failed to create program',
                'error_type': 'system_error'
            }

    def update_program(self, program_id: int, program_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update program information.

        Args:
            program_id (int): Program ID
            program_data (Dict[str, Any]): Updated program data

        Returns:
            Dict[str, Any]: Update result
        """
        existing_program = self.get_program_by_id(program_id)
        if not existing_program:
            return {
                'success': False,
                'error': 'Program not found',
                'error_type': 'not_found'
            }

        update_fields = []
        params = []
        for field in self.UPDATABLE_FIELDS:
            if field in program_data:
                update_fields.append(f"{field} = ?")
                params.append(program_data[field])

        if not update_fields:
            return {
                'success': False,
                'error': 'No valid fields to update',
                'error_type': 'validation_error'
            }

        if 'name' in program_data and not (program_data['name'] or '').strip():
            return {
                'success': False,
                'error': 'Program name is required',
                'error_type': 'validation_error'
            }

        update_fields.append("updated_at = CURRENT_TIMESTAMP")
        params.append(program_id)

        try:
            self.db.execute_update(
                f"UPDATE learning_programs SET {', '.join(update_fields)} WHERE id = ?",
                params
            )
            self.logger.info(f"Program {program_id} updated successfully")
            return {
                'success': True,
                'program': self.get_program_by_id(program_id),
                'message': 'Program updated successfully'
            }

        except Exception as e:
            self.logger.error(f"Program update failed for ID {program_id}: {str(e)}")
            return {
                'success': False,
                'error': 'Failed to update program',
                'error_type': 'system_error'
            }

    def delete_program(self, program_id: int, deleted_by: int = None) -> bool:
        """
        Soft delete a program (mark as inactive). Its QR code stops resolving.

        Args:
            program_id (int): Program ID
            deleted_by (int): ID of user deleting the program

        Returns:
            bool: True if a program was deactivated
        """
        affected_rows = self.db.execute_update(
            "UPDATE learning_programs SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (program_id,)
        )

        if affected_rows > 0:
            self.logger.info(f"Program {program_id} deleted by user {deleted_by}")
            return True

        return False

    def get_all_programs(self) -> List[Dict[str, Any]]:
        """Get all active programs, newest first."""
        return self.db.execute_query(
            PROGRAM_SELECT + " WHERE lp.is_active = 1 ORDER BY lp.created_at DESC, lp.id DESC"
        )

    def get_program_by_id(self, program_id: int) -> Optional[Dict[str, Any]]:
        """Get a program by ID, active or not."""
        return self.db.execute_query(
            PROGRAM_SELECT + " WHERE lp.id = ?",
            (program_id,),
            fetch_all=False
        )

    def get_programs_by_creator(self, user_id: int) -> List[Dict[str, Any]]:
        """Get active programs created by a user."""
        return self.db.execute_query(
            PROGRAM_SELECT + " WHERE lp.created_by = ? AND lp.is_active = 1 ORDER BY lp.created_at DESC, lp.id DESC",
            (user_id,)
        )

    def search_programs(self, term: str) -> List[Dict[str, Any]]:
        """
        Search active programs by name, description or location.

        Args:
            term (str): Search term

        Returns:
            List[Dict[str, Any]]: Matching programs
        """
        pattern = f"%{term}%"
        return self.db.execute_query(
            PROGRAM_SELECT + """ WHERE lp.is_active = 1
                AND (lp.name LIKE ? OR lp.description LIKE ? OR lp.location LIKE ?)
                ORDER BY lp.created_at DESC, lp.id DESC""",
            (pattern, pattern, pattern)
        )

    def get_program_stats(self, program_id: int) -> Optional[Dict[str, Any]]:
        """
        Get participation statistics for a program.

        Args:
            program_id (int): Program ID

        Returns:
            Dict[str, Any]: QR code count, check-in totals and last check-in, or None
        """
        if not self.get_program_by_id(program_id):
            return None

        qr_codes = self.db.execute_query(
            "SELECT COUNT(*) as count FROM qr_codes WHERE program_id = ? AND is_active = 1",
            (program_id,),
            fetch_all=False
        )
        check_ins = self.db.execute_query(
            """SELECT COUNT(*) as total, COUNT(DISTINCT student_id) as unique_students,
                      MAX(check_in_time) as last_check_in
               FROM check_ins WHERE program_id = ?""",
            (program_id,),
            fetch_all=False
        )

        return {
            'totalQRCodes': qr_codes['count'],
            'totalCheckIns': check_ins['total'],
            'uniqueStudents': check_ins['unique_students'],
            'lastCheckIn': check_ins['last_check_in']
        }
