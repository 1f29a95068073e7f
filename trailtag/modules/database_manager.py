"""
Database Manager Module - TrailTag

This module handles all database operations for TrailTag.
It manages SQLite connections, creates the schema for users, learning
programs, QR codes, check-ins, parent/student links and bearer-token
sessions, and provides query helpers and transaction support used by
every other manager.

Features:
- SQLite database connection management
- Table schema creation and migration
- Default admin account
- Query and update helpers
- Transaction support, including immediate (write-locking) transactions
"""

import sqlite3
import logging
from contextlib import contextmanager
import threading
from werkzeug.security import generate_password_hash
import os

STATS_TABLES = ('users', 'learning_programs', 'qr_codes', 'check_ins')


def to_flag(value):
    """Stored 0/1 for a JSON boolean or 0/1, None for anything else."""
    if isinstance(value, (bool, int)) and value in (0, 1):
        return int(value)
    return None


class DatabaseManager:
    """
    Database management class for TrailTag.
    Handles connection management, schema creation, and data manipulation
    with error handling and transaction support.
    """

    def __init__(self, db_path, admin_account=None):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file
            admin_account (dict): Default admin credentials (username, password, email)
        """
        self.db_path = str(db_path)
        self.admin_account = admin_account or {
            'username': 'admin',
            'password': 'admin123',
            'email': 'admin@trailtag.com'
        }
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        # Ensure database directory exists
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        # Initialize database schema if it doesn't exist
        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections with automatic cleanup.
        Provides thread-local connections for thread safety.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if not hasattr(self._local, 'connection'):
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0
            )
            self._local.connection.row_factory = sqlite3.Row
            # Enable foreign key constraints
            self._local.connection.execute("PRAGMA foreign_keys = ON")

        try:
            yield self._local.connection
        except Exception as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise

    def initialize_database(self):
        """
        Create all necessary tables and initial data.
        This method is idempotent and can be called multiple times safely.
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                # Students, parents and admins share one table
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS users (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        username VARCHAR(50) UNIQUE NOT NULL,
                        password_hash VARCHAR(255) NOT NULL,
                        full_name VARCHAR(100) NOT NULL,
                        email VARCHAR(100) UNIQUE NOT NULL,
                        phone VARCHAR(20) NOT NULL DEFAULT '',
                        address VARCHAR(200) DEFAULT '',
                        user_type TEXT CHECK(user_type IN ('student', 'parent', 'admin')) NOT NULL,
                        timezone VARCHAR(50) DEFAULT 'Asia/Seoul',
                        language VARCHAR(10) DEFAULT 'ko',
                        is_active BOOLEAN DEFAULT 1,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS learning_programs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name VARCHAR(100) NOT NULL,
                        description TEXT,
                        location VARCHAR(200),
                        start_datetime TIMESTAMP,
                        end_datetime TIMESTAMP,
                        created_by INTEGER NOT NULL,
                        is_active BOOLEAN DEFAULT 1,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (created_by) REFERENCES users(id)
                    )
                """)

                # One QR code per program
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS qr_codes (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        program_id INTEGER NOT NULL UNIQUE,
                        qr_code_data VARCHAR(255) UNIQUE NOT NULL,
                        location_name VARCHAR(200) NOT NULL,
                        issued_at INTEGER NOT NULL,
                        is_active BOOLEAN DEFAULT 1,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (program_id) REFERENCES learning_programs(id) ON DELETE CASCADE
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS check_ins (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        student_id INTEGER NOT NULL,
                        program_id INTEGER NOT NULL,
                        qr_code_id INTEGER NOT NULL,
                        location VARCHAR(200),
                        check_in_time TIMESTAMP NOT NULL,
                        FOREIGN KEY (student_id) REFERENCES users(id),
                        FOREIGN KEY (program_id) REFERENCES learning_programs(id),
                        FOREIGN KEY (qr_code_id) REFERENCES qr_codes(id)
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS parent_student_relationships (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        parent_id INTEGER NOT NULL,
                        student_id INTEGER NOT NULL,
                        relationship_type VARCHAR(50) DEFAULT 'parent',
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (parent_id) REFERENCES users(id) ON DELETE CASCADE,
                        FOREIGN KEY (student_id) REFERENCES users(id) ON DELETE CASCADE,
                        UNIQUE(parent_id, student_id)
                    )
                """)

                # Issued bearer tokens, stored hashed
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS user_sessions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        token_hash VARCHAR(64) NOT NULL,
                        expires_at TIMESTAMP NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
                    )
                """)

                # Create indexes for better performance
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_users_type ON users(user_type)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_users_phone ON users(phone)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_check_ins_student_program ON check_ins(student_id, program_id, check_in_time)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_check_ins_time ON check_ins(check_in_time)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_qr_codes_data ON qr_codes(qr_code_data)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_parent_student_parent ON parent_student_relationships(parent_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_sessions_token ON user_sessions(token_hash)")

                conn.commit()

                # Insert default data if tables are empty
                self._insert_default_data(cursor)
                conn.commit()

                self.logger.info("Database initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise

    def _insert_default_data(self, cursor):
        """
        Insert the default admin account when no admin exists.

        Args:
            cursor: Database cursor object
        """
        cursor.execute("SELECT COUNT(*) FROM users WHERE user_type = 'admin'")
        if cursor.fetchone()[0] == 0:
            cursor.execute("""
                INSERT INTO users (username, password_hash, full_name, email, phone, user_type)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                self.admin_account['username'],
                generate_password_hash(self.admin_account['password']),
                'System Administrator',
                self.admin_account['email'],
                '',
                'admin'
            ))
            self.logger.info(f"Default admin user created: {self.admin_account['username']}")

    def execute_query(self, query, params=None, fetch_all=True):
        """
        Execute a SELECT query and return results.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters
            fetch_all (bool): Whether to fetch all results or just one

        Returns:
            list or dict: Query results
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(query, params or ())

                if fetch_all:
                    return [dict(row) for row in cursor.fetchall()]
                result = cursor.fetchone()
                return dict(result) if result else None

        except Exception as e:
            self.logger.error(f"Query execution failed: {str(e)}")
            raise

    def execute_update(self, query, params=None):
        """
        Execute an INSERT, UPDATE, or DELETE query.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters

        Returns:
            int: Number of affected rows or last inserted row ID
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(query, params or ())
                conn.commit()

                # Return last inserted row ID for INSERT statements
                if query.strip().upper().startswith('INSERT'):
                    return cursor.lastrowid
                return cursor.rowcount

        except Exception as e:
            self.logger.error(f"Update execution failed: {str(e)}")
            raise

    @contextmanager
    def transaction(self, immediate=False):
        """
        Context manager for database transactions with automatic rollback on error.

        Args:
            immediate (bool): Take the write lock up front (BEGIN IMMEDIATE) so a
                read-then-write sequence cannot interleave with another writer.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            if conn.in_transaction:
                conn.commit()
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Transaction rolled back: {str(e)}")
                raise

    def get_database_stats(self):
        """
        Count rows in the main tables.

        Returns:
            dict: table count plus a row count per main table
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM sqlite_master WHERE type = 'table'")
            stats = {'tables': cursor.fetchone()[0], 'records': {}}

            for table in STATS_TABLES:
                cursor.execute(f"SELECT COUNT(*) FROM {table}")
                stats['records'][table] = cursor.fetchone()[0]

        return stats

    def close_all_connections(self):
        """Close the current thread's database connection."""
        if hasattr(self._local, 'connection'):
            self._local.connection.close()
            del self._local.connection
