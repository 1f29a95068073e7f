"""
Authentication Manager Module - TrailTag

This module handles user registration, login and bearer-token sessions.
Tokens are JWTs signed with the configured secret; every issued token is
recorded (hashed) in the user_sessions table so a logout revokes it before
it expires.

Features:
- User registration with role validation
- Password hashing and verification
- JWT issuance and verification
- Session revocation (logout)
- Password change and profile updates
"""

from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
import logging
import hashlib
import secrets
import re

import jwt

USER_TYPES = ('student', 'parent', 'admin')

# Admin accounts are only created by an existing admin
SELF_REGISTRATION_TYPES = ('student', 'parent')

PUBLIC_USER_FIELDS = """id, username, full_name, email, phone, address, user_type,
                        timezone, language, is_active, created_at, updated_at"""

SESSION_TIME_FORMAT = '%Y-%m-%d %H:%M:%S'


def hash_token(token: str) -> str:
    """Digest under which a bearer token is stored."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class AuthManager:
    """
    Authentication and session management for TrailTag.
    """

    def __init__(self, database_manager, secret_key: str, algorithm: str = 'HS256',
                 expires_hours: int = 24):
        """
        Initialize the authentication manager.

        Args:
            database_manager: Database manager instance
            secret_key (str): JWT signing key
            algorithm (str): JWT signing algorithm
            expires_hours (int): Token lifetime in hours
        """
        self.db = database_manager
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_lifetime = timedelta(hours=expires_hours)
        self.logger = logging.getLogger(__name__)

        self.REQUIRED_REGISTRATION_FIELDS = ['username', 'password', 'full_name', 'email', 'user_type']
        self.PROFILE_FIELDS = ['full_name', 'email', 'phone', 'address', 'timezone', 'language']

        self.security_config = {
            'username_min_length': 3,
            'password_min_length': 6
        }

    def register_user(self, user_data: Dict[str, Any],
                      allowed_types=SELF_REGISTRATION_TYPES) -> Dict[str, Any]:
        """
        Register a new user account.

        Args:
            user_data (Dict[str, Any]): username, password, full_name, email,
                user_type and optional phone, address
            allowed_types (tuple): Roles this registration may create

        Returns:
            Dict[str, Any]: Registration result with the public user record
        """
        for field in self.REQUIRED_REGISTRATION_FIELDS:
            if not user_data.get(field):
                return {
                    'success': False,
                    'error': f'{field} is required',
                    'error_type': 'validation_error'
                }

        if user_data['user_type'] not in allowed_types:
            return {
                'success': False,
                'error': 'Invalid user type',
                'error_type': 'validation_error'
            }

        validation_result = self._validate_user_data(
            user_data['username'], user_data['password'], user_data['email']
        )
        if not validation_result['valid']:
            return {
                'success': False,
                'error': validation_result['error'],
                'error_type': 'validation_error'
            }

        conflict = self._check_unique(user_data['username'], user_data['email'])
        if conflict:
            return conflict

        try:
            user_id = self.db.execute_update(
                """INSERT INTO users (username, password_hash, full_name, email, phone,
                                      address, user_type, timezone, language)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    user_data['username'],
                    generate_password_hash(user_data['password']),
                    user_data['full_name'],
                    user_data['email'],
                    user_data.get('phone') or '',
                    user_data.get('address') or '',
                    user_data['user_type'],
                    user_data.get('timezone') or 'Asia/Seoul',
                    user_data.get('language') or 'ko'
                )
            )
        except Exception as e:
            self.logger.error(f"User registration failed for {user_data['username']}: {str(e)}")
            return {
                'success': False,
                'error': 'Registration failed',
                'error_type': 'system_error'
            }

        self.logger.info(f"User registered: {user_data['username']} ({user_data['user_type']}, ID: {user_id})")
        return {
            'success': True,
            'user': self.get_user_public(user_id),
            'message': 'User registered successfully'
        }

    def authenticate_user(self, username: str, password: str) -> Dict[str, Any]:
        """
        Authenticate user with username and password and issue a bearer token.

        Args:
            username (str): Username
            password (str): Password

        Returns:
            Dict[str, Any]: token and public user record on success
        """
        if not username or not password:
            return {
                'success': False,
                'error': 'Username and password are required',
                'error_type': 'validation_error'
            }

        user = self.db.execute_query(
            "SELECT * FROM users WHERE username = ? AND is_active = 1",
            (username,),
            fetch_all=False
        )

        if not user or not check_password_hash(user['password_hash'], password):
            self.logger.warning(f"Authentication failed for user: {username}")
            return {
                'success': False,
                'error': 'Invalid username or password',
                'error_type': 'unauthorized'
            }

        token = self._issue_token(user)
        self.logger.info(f"User authenticated successfully: {username}")

        return {
            'success': True,
            'token': token,
            'user': self.get_user_public(user['id']),
            'message': 'Login successful'
        }

    def _issue_token(self, user: Dict[str, Any]) -> str:
        """
        Sign a JWT for the user and record its session.

        Args:
            user (Dict[str, Any]): User row

        Returns:
            str: Encoded token
        """
        now = datetime.now(timezone.utc)
        expires_at = now + self.token_lifetime

        token = jwt.encode({
            'user_id': user['id'],
            'username': user['username'],
            'user_type': user['user_type'],
            'jti': secrets.token_hex(8),
            'iat': now,
            'exp': expires_at
        }, self.secret_key, algorithm=self.algorithm)

        self.db.execute_update(
            "INSERT INTO user_sessions (user_id, token_hash, expires_at) VALUES (?, ?, ?)",
            (user['id'], hash_token(token), expires_at.strftime(SESSION_TIME_FORMAT))
        )
        return token

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Resolve a bearer token to its user.

        The token must carry a valid signature, be unexpired, belong to a
        recorded session and point to an active user.

        Args:
            token (str): Encoded token

        Returns:
            Dict[str, Any]: Public user record, or None if the token is not valid
        """
        try:
            data = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            self.logger.warning("Rejected expired token")
            return None
        except jwt.InvalidTokenError:
            self.logger.warning("Rejected invalid token")
            return None

        now = datetime.now(timezone.utc).strftime(SESSION_TIME_FORMAT)
        session = self.db.execute_query(
            "SELECT id FROM user_sessions WHERE token_hash = ? AND user_id = ? AND expires_at > ?",
            (hash_token(token), data.get('user_id'), now),
            fetch_all=False
        )
        if not session:
            self.logger.warning(f"Rejected revoked token for user {data.get('user_id')}")
            return None

        user = self.get_user_public(data['user_id'])
        if not user or not user['is_active']:
            return None
        return user

    def logout(self, token: str) -> bool:
        """Revoke the session of a bearer token."""
        affected_rows = self.db.execute_update(
            "DELETE FROM user_sessions WHERE token_hash = ?",
            (hash_token(token),)
        )
        if affected_rows > 0:
            self.logger.info("Session revoked")
            return True
        return False

    def revoke_user_sessions(self, user_id: int) -> int:
        return self.db.execute_update("DELETE FROM user_sessions WHERE user_id = ?", (user_id,))

    def change_password(self, user_id: int, current_password: str,
                        new_password: str) -> Dict[str, Any]:
        """
        Update user password with validation.

        Args:
            user_id (int): User ID
            current_password (str): Current password
            new_password (str): New password

        Returns:
            Dict[str, Any]: Update result
        """
        if not current_password or not new_password:
            return {
                'success': False,
                'error': 'Current password and new password are required',
                'error_type': 'validation_error'
            }

        user = self.db.execute_query(
            "SELECT * FROM users WHERE id = ? AND is_active = 1",
            (user_id,),
            fetch_all=False
        )
        if not user:
            return {
                'success': False,
                'error': 'User not found',
                'error_type': 'not_found'
            }

        if not check_password_hash(user['password_hash'], current_password):
            self.logger.warning(f"Password update failed - incorrect current password for user {user_id}")
            return {
                'success': False,
                'error': 'Current password is incorrect',
                'error_type': 'unauthorized'
            }

        password_validation = self._validate_password(new_password)
        if not password_validation['valid']:
            return {
                'success': False,
                'error': password_validation['error'],
                'error_type': 'validation_error'
            }

        self.db.execute_update(
            "UPDATE users SET password_hash = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (generate_password_hash(new_password), user_id)
        )
        self.logger.info(f"Password updated successfully for user {user_id}")
        return {
            'success': True,
            'message': 'Password changed successfully'
        }

    def update_profile(self, user_id: int, profile_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update the caller's own profile fields.

        Args:
            user_id (int): User ID
            profile_data (Dict[str, Any]): full_name, email, phone, address, timezone, language

        Returns:
            Dict[str, Any]: Update result with the refreshed user
        """
        updates = {field: profile_data[field] for field in self.PROFILE_FIELDS
                   if profile_data.get(field) is not None}
        if not updates:
            return {
                'success': False,
                'error': 'No valid fields to update',
                'error_type': 'validation_error'
            }

        if 'email' in updates:
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

        set_clause = ', '.join(f"{field} = ?" for field in updates)
        params = list(updates.values()) + [user_id]
        self.db.execute_update(
            f"UPDATE users SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            params
        )

        self.logger.info(f"Profile updated for user {user_id}")
        return {
            'success': True,
            'user': self.get_user_public(user_id),
            'message': 'Profile updated successfully'
        }

    def get_user_public(self, user_id: int) -> Optional[Dict[str, Any]]:
        """Get a user record without the password hash."""
        return self.db.execute_query(
            f"SELECT {PUBLIC_USER_FIELDS} FROM users WHERE id = ?",
            (user_id,),
            fetch_all=False
        )

    def _check_unique(self, username: str, email: str) -> Optional[Dict[str, Any]]:
        """Return a conflict result if the username or email is taken."""
        if self.db.execute_query("SELECT id FROM users WHERE username = ?", (username,), fetch_all=False):
            return {
                'success': False,
                'error': 'Username already exists',
                'error_type': 'conflict'
            }
        if self.db.execute_query("SELECT id FROM users WHERE email = ?", (email,), fetch_all=False):
            return {
                'success': False,
                'error': 'Email already exists',
                'error_type': 'conflict'
            }
        return None

    def _validate_user_data(self, username: str, password: str, email: str) -> Dict[str, Any]:
        """
        Validate user registration data.

        Args:
            username (str): Username
            password (str): Password
            email (str): Email address

        Returns:
            Dict[str, Any]: Validation result
        """
        if len(username) < self.security_config['username_min_length']:
            return {'valid': False, 'error': 'Username must be at least 3 characters long'}

        if not re.match(r'^[a-zA-Z0-9_-]+$', username):
            return {'valid': False, 'error': 'Username can only contain letters, numbers, hyphens, and underscores'}

        password_validation = self._validate_password(password)
        if not password_validation['valid']:
            return password_validation

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email):
            return {'valid': False, 'error': 'Invalid email address format'}

        return {'valid': True}

    def _validate_password(self, password: str) -> Dict[str, Any]:
        if not password:
            return {'valid': False, 'error': 'Password is required'}

        if len(password) < self.security_config['password_min_length']:
            return {'valid': False, 'error': f'Password must be at least {self.security_config["password_min_length"]} characters long'}

        return {'valid': True}
