"""
Dashboard Manager Module - TrailTag

Aggregated statistics for the admin, student and parent dashboards, plus a
database health probe for admins.
"""

from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Callable
import logging
import time

from trailtag.modules.checkin_manager import TIMESTAMP_FORMAT

class DashboardManager:
    """
    Role-specific dashboard statistics.
    """

    def __init__(self, database_manager, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the dashboard manager.

        Args:
            database_manager: Database manager instance
            clock (Callable): Returns the current server time, defaults to datetime.now
        """
        self.db = database_manager
        self.clock = clock or datetime.now
        self.started_at = time.time()
        self.logger = logging.getLogger(__name__)

    def _cutoff(self, days: int) -> str:
        return (self.clock() - timedelta(days=days)).strftime(TIMESTAMP_FORMAT)

    def _count(self, query: str, params=None) -> int:
        result = self.db.execute_query(query, params, fetch_all=False)
        return result['count'] if result else 0

    def get_admin_stats(self, days: int = 30) -> Dict[str, Any]:
        """
        Get system-wide statistics for the admin dashboard.

        Args:
            days (int): Period used for the "recent" figures and trends

        Returns:
            Dict[str, Any]: overview, usersByType, activePrograms, dailyTrends,
                activeStudents, qrUsage and period
        """
        cutoff = self._cutoff(days)

        overview = {
            'totalUsers': self._count("SELECT COUNT(*) as count FROM users"),
            'totalPrograms': self._count("SELECT COUNT(*) as count FROM learning_programs WHERE is_active = 1"),
            'totalQRCodes': self._count("SELECT COUNT(*) as count FROM qr_codes WHERE is_active = 1"),
            'totalCheckIns': self._count("SELECT COUNT(*) as count FROM check_ins"),
            'recentCheckIns': self._count(
                "SELECT COUNT(*) as count FROM check_ins WHERE check_in_time > ?", (cutoff,)
            ),
            'recentUsers': self._count(
                "SELECT COUNT(*) as count FROM users WHERE created_at > ?", (cutoff,)
            ),
            'recentPrograms': self._count(
                "SELECT COUNT(*) as count FROM learning_programs WHERE created_at > ?", (cutoff,)
            )
        }

        users_by_type = {
            row['user_type']: row['count']
            for row in self.db.execute_query(
                "SELECT user_type, COUNT(*) as count FROM users GROUP BY user_type"
            )
        }

        active_programs = self.db.execute_query(
            """SELECT lp.id, lp.name, COUNT(ci.id) as check_in_count,
                      COUNT(DISTINCT ci.student_id) as unique_students
               FROM learning_programs lp
               LEFT JOIN check_ins ci ON lp.id = ci.program_id
               WHERE lp.is_active = 1
               GROUP BY lp.id, lp.name
               ORDER BY check_in_count DESC
               LIMIT 10"""
        )

        daily_trends = self.db.execute_query(
            """SELECT date(check_in_time) as date, COUNT(*) as count
               FROM check_ins
               WHERE check_in_time > ?
               GROUP BY date(check_in_time)
               ORDER BY date""",
            (cutoff,)
        )

        active_students = self.db.execute_query(
            """SELECT u.id, u.full_name, u.email, COUNT(ci.id) as check_in_count,
                      COUNT(DISTINCT ci.program_id) as programs_visited
               FROM users u
               JOIN check_ins ci ON u.id = ci.student_id
               WHERE u.user_type = 'student' AND ci.check_in_time > ?
               GROUP BY u.id, u.full_name, u.email
               ORDER BY check_in_count DESC
               LIMIT 10""",
            (cutoff,)
        )

        qr_usage = self.db.execute_query(
            """SELECT qr.id, qr.location_name, lp.name as program_name,
                      COUNT(ci.id) as usage_count
               FROM qr_codes qr
               JOIN learning_programs lp ON qr.program_id = lp.id
               LEFT JOIN check_ins ci ON qr.id = ci.qr_code_id
               WHERE qr.is_active = 1
               GROUP BY qr.id, qr.location_name, lp.name
               ORDER BY usage_count DESC
               LIMIT 10"""
        )

        return {
            'overview': overview,
            'usersByType': users_by_type,
            'activePrograms': active_programs,
            'dailyTrends': daily_trends,
            'activeStudents': active_students,
            'qrUsage': qr_usage,
            'period': f"{days} days"
        }

    def get_student_stats(self, student_id: int, days: int = 30) -> Dict[str, Any]:
        """
        Get dashboard statistics for one student.

        Args:
            student_id (int): Student user ID
            days (int): Period used for the "recent" figures and daily activity

        Returns:
            Dict[str, Any]: overview, favoritePrograms, dailyActivity,
                recentActivity and period
        """
        now = self.clock()
        cutoff = self._cutoff(days)
        week_ago = self._cutoff(7)
        today = now.strftime('%Y-%m-%d')

        totals = self.db.execute_query(
            """SELECT COUNT(*) as total_check_ins,
                      COUNT(DISTINCT program_id) as unique_programs,
                      COUNT(DISTINCT qr_code_id) as unique_locations
               FROM check_ins WHERE student_id = ?""",
            (student_id,),
            fetch_all=False
        )

        overview = {
            'totalCheckIns': totals['total_check_ins'],
            'uniquePrograms': totals['unique_programs'],
            'uniqueLocations': totals['unique_locations'],
            'recentCheckIns': self._count(
                "SELECT COUNT(*) as count FROM check_ins WHERE student_id = ? AND check_in_time > ?",
                (student_id, cutoff)
            ),
            'todayCheckIns': self._count(
                "SELECT COUNT(*) as count FROM check_ins WHERE student_id = ? AND date(check_in_time) = ?",
                (student_id, today)
            ),
            'weekCheckIns': self._count(
                "SELECT COUNT(*) as count FROM check_ins WHERE student_id = ? AND check_in_time > ?",
                (student_id, week_ago)
            )
        }

        favorite_programs = self.db.execute_query(
            """SELECT lp.name, COUNT(*) as visit_count
               FROM check_ins ci
               JOIN learning_programs lp ON ci.program_id = lp.id
               WHERE ci.student_id = ?
               GROUP BY lp.id, lp.name
               ORDER BY visit_count DESC
               LIMIT 5""",
            (student_id,)
        )

        daily_activity = self.db.execute_query(
            """SELECT date(check_in_time) as date, COUNT(*) as count
               FROM check_ins
               WHERE student_id = ? AND check_in_time > ?
               GROUP BY date(check_in_time)
               ORDER BY date""",
            (student_id, cutoff)
        )

        recent_activity = self.db.execute_query(
            """SELECT ci.check_in_time, lp.name as program_name, qr.location_name
               FROM check_ins ci
               JOIN learning_programs lp ON ci.program_id = lp.id
               JOIN qr_codes qr ON ci.qr_code_id = qr.id
               WHERE ci.student_id = ?
               ORDER BY ci.check_in_time DESC, ci.id DESC
               LIMIT 10""",
            (student_id,)
        )

        return {
            'overview': overview,
            'favoritePrograms': favorite_programs,
            'dailyActivity': daily_activity,
            'recentActivity': recent_activity,
            'period': f"{days} days"
        }

    def get_parent_stats(self, parent_id: int, days: int = 30) -> Dict[str, Any]:
        """
        Get dashboard statistics across the students a parent monitors.

        Args:
            parent_id (int): Parent user ID
            days (int): Period used for the "recent" figures

        Returns:
            Dict[str, Any]: overview, studentActivity, popularPrograms and period
        """
        students = self.db.execute_query(
            """SELECT u.id, u.full_name, u.email
               FROM users u
               JOIN parent_student_relationships psr ON u.id = psr.student_id
               WHERE psr.parent_id = ? AND u.user_type = 'student'
               ORDER BY u.full_name""",
            (parent_id,)
        )

        if not students:
            return {
                'overview': {'monitoredStudents': 0},
                'studentActivity': [],
                'popularPrograms': [],
                'period': f"{days} days",
                'message': 'No students being monitored'
            }

        cutoff = self._cutoff(days)
        student_ids = [student['id'] for student in students]
        placeholders = ','.join('?' * len(student_ids))

        overview = {
            'monitoredStudents': len(students),
            'totalCheckIns': self._count(
                f"SELECT COUNT(*) as count FROM check_ins WHERE student_id IN ({placeholders})",
                student_ids
            ),
            'recentCheckIns': self._count(
                f"SELECT COUNT(*) as count FROM check_ins WHERE student_id IN ({placeholders}) AND check_in_time > ?",
                student_ids + [cutoff]
            ),
            'uniquePrograms': self._count(
                f"SELECT COUNT(DISTINCT program_id) as count FROM check_ins WHERE student_id IN ({placeholders})",
                student_ids
            )
        }

        student_activity = []
        for student in students:
            activity = self.db.execute_query(
                """SELECT COUNT(*) as total,
                          SUM(CASE WHEN check_in_time > ? THEN 1 ELSE 0 END) as recent,
                          MAX(check_in_time) as last_check_in
                   FROM check_ins WHERE student_id = ?""",
                (cutoff, student['id']),
                fetch_all=False
            )
            student_activity.append({
                'student': student,
                'totalCheckIns': activity['total'],
                'recentCheckIns': activity['recent'] or 0,
                'lastCheckIn': activity['last_check_in']
            })

        popular_programs = self.db.execute_query(
            f"""SELECT lp.name, COUNT(*) as check_in_count,
                       COUNT(DISTINCT ci.student_id) as student_count
                FROM check_ins ci
                JOIN learning_programs lp ON ci.program_id = lp.id
                WHERE ci.student_id IN ({placeholders}) AND ci.check_in_time > ?
                GROUP BY lp.id, lp.name
                ORDER BY check_in_count DESC
                LIMIT 5""",
            student_ids + [cutoff]
        )

        return {
            'overview': overview,
            'studentActivity': student_activity,
            'popularPrograms': popular_programs,
            'period': f"{days} days"
        }

    def get_system_health(self) -> Dict[str, Any]:
        """
        Probe the database and report record totals and uptime.

        Returns:
            Dict[str, Any]: status, database and performance details
        """
        try:
            stats = self.db.get_database_stats()
            healthy = True
        except Exception as e:
            self.logger.error(f"Health check failed: {str(e)}")
            stats = {'tables': 0, 'records': {}}
            healthy = False

        return {
            'status': 'healthy' if healthy else 'unhealthy',
            'database': {
                'connected': healthy,
                'tables': stats['tables'],
                'records': stats['records']
            },
            'performance': {
                'uptime': int(time.time() - self.started_at)
            },
            'timestamp': self.clock().isoformat()
        }

