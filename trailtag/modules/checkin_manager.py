"""
Check-in Manager Module - TrailTag

This module handles student check-ins for learning programs. It validates
scanned QR payloads, guards against duplicate submissions, records
check-ins and answers history and statistics queries for students,
parents and admins.

Check-in pipeline:
- Parse the scanned URI (MalformedCodeError)
- Resolve the active program/QR-code pairing (UnknownCodeError)
- Reject a repeat scan by the same student for the same program inside
  the duplicate window, measured against the server clock at call time
  (DuplicateCheckInError)
- Record the check-in with a server-assigned timestamp
"""

from datetime import datetime, timedelta
import logging
from typing import Dict, List, Optional, Any, Callable
from dataclasses import dataclass, asdict

from trailtag.modules.qr_generator import QRGenerator
from trailtag.modules.errors import UnknownCodeError, DuplicateCheckInError

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


@dataclass
class CheckInConfirmation:
    """Confirmation payload returned for a successful check-in."""
    id: int
    program_id: int
    program_name: str
    program_description: Optional[str]
    location: str
    check_in_time: str
    qr_issued_at: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CheckInManager:
    """
    Check-in processing and history queries.
    """

    def __init__(self, database_manager, qr_generator: Optional[QRGenerator] = None,
                 duplicate_window_minutes: int = 5,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the check-in manager.

        Args:
            database_manager: Database manager instance
            qr_generator (QRGenerator): Payload parser
            duplicate_window_minutes (int): Minutes during which a repeat scan is rejected
            clock (Callable): Returns the current server time, defaults to datetime.now
        """
        self.db = database_manager
        self.qr_generator = qr_generator or QRGenerator()
        self.duplicate_window = timedelta(minutes=duplicate_window_minutes)
        self.clock = clock or datetime.now
        self.logger = logging.getLogger(__name__)

    def process_check_in(self, student_id: int, qr_data: str) -> CheckInConfirmation:
        """
        Validate a scanned QR payload and record the check-in.

        Args:
            student_id (int): Authenticated student's user ID
            qr_data (str): Raw scanned string

        Returns:
            CheckInConfirmation: Program name, location and timestamp of the new record

        Raises:
            MalformedCodeError: payload is not a well-formed check-in URI
            UnknownCodeError: program/QR-code pairing is missing or inactive
            DuplicateCheckInError: same student and program inside the duplicate window
        """
        payload = self.qr_generator.parse_payload(qr_data)

        qr_code = self._get_active_qr_code(payload.program_id)
        if not qr_code:
            self.logger.warning(f"Check-in rejected: no active QR code for program {payload.program_id}")
            raise UnknownCodeError(f"No active QR code for program {payload.program_id}")

        if payload.location != qr_code['location_name']:
            self.logger.warning(
                f"Check-in rejected: location {payload.location!r} does not match QR code {qr_code['id']} "
                f"({qr_code['location_name']!r})"
            )
            raise UnknownCodeError(f"Superseded or altered QR code for program {payload.program_id}")

        # isoformat omits the fraction when microsecond is 0, matching TIMESTAMP_FORMAT
        now = self.clock()
        check_in_time = now.isoformat(sep=' ')
        window_start = (now - self.duplicate_window).isoformat(sep=' ')

        # Guard and insert share one write-locked transaction
        with self.db.transaction(immediate=True) as conn:
            recent = conn.execute(
                """SELECT id, check_in_time FROM check_ins
                   WHERE student_id = ? AND program_id = ? AND check_in_time > ?
                   ORDER BY check_in_time DESC
                   LIMIT 1""",
                (student_id, qr_code['program_id'], window_start)
            ).fetchone()

            check_in_id = None
            if recent is None:
                cursor = conn.execute(
                    """INSERT INTO check_ins (student_id, program_id, qr_code_id, location, check_in_time)
                       VALUES (?, ?, ?, ?, ?)""",
                    (student_id, qr_code['program_id'], qr_code['id'], qr_code['location_name'], check_in_time)
                )
                check_in_id = cursor.lastrowid

        if recent is not None:
            self.logger.warning(
                f"Duplicate check-in rejected: student {student_id}, program {qr_code['program_id']}, "
                f"previous at {recent['check_in_time']}"
            )
            raise DuplicateCheckInError(
                f"Student {student_id} checked in to program {qr_code['program_id']} at {recent['check_in_time']}"
            )

        self.logger.info(
            f"Check-in recorded: student {student_id}, program {qr_code['program_id']}, "
            f"location {qr_code['location_name']!r}"
        )
        return CheckInConfirmation(
            id=check_in_id,
            program_id=qr_code['program_id'],
            program_name=qr_code['program_name'],
            program_description=qr_code['program_description'],
            location=qr_code['location_name'],
            check_in_time=check_in_time,
            qr_issued_at=payload.issued_at
        )

    def _get_active_qr_code(self, program_id: int) -> Optional[Dict[str, Any]]:
        """
        Get the active QR code of an active program.

        Args:
            program_id (int): Learning program ID

        Returns:
            Dict[str, Any]: QR code joined with its program, or None
        """
        return self.db.execute_query(
            """SELECT qr.*, lp.name as program_name, lp.description as program_description
               FROM qr_codes qr
               JOIN learning_programs lp ON qr.program_id = lp.id
               WHERE qr.program_id = ? AND qr.is_active = 1 AND lp.is_active = 1""",
            (program_id,),
            fetch_all=False
        )

    def get_student_history(self, student_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        """
        Get a student's check-ins, newest first.

        Args:
            student_id (int): Student user ID
            limit (int): Number of records to retrieve

        Returns:
            List[Dict[str, Any]]: Check-in records with program and QR details
        """
        return self.db.execute_query(
            """SELECT ci.*, lp.name as program_name, lp.description as program_description,
                      qr.location_name as qr_location
               FROM check_ins ci
               JOIN learning_programs lp ON ci.program_id = lp.id
               JOIN qr_codes qr ON ci.qr_code_id = qr.id
               WHERE ci.student_id = ?
               ORDER BY ci.check_in_time DESC, ci.id DESC
               LIMIT ?""",
            (student_id, limit)
        )

    def get_today_check_ins(self, student_id: int) -> List[Dict[str, Any]]:
        """Get a student's check-ins for the current server date."""
        today = self.clock().strftime('%Y-%m-%d')
        return self.db.execute_query(
            """SELECT ci.*, lp.name as program_name, lp.description as program_description
               FROM check_ins ci
               JOIN learning_programs lp ON ci.program_id = lp.id
               WHERE ci.student_id = ? AND date(ci.check_in_time) = ?
               ORDER BY ci.check_in_time DESC, ci.id DESC""",
            (student_id, today)
        )

    def get_student_stats(self, student_id: int) -> Dict[str, Any]:
        """
        Get check-in statistics for a student.

        Args:
            student_id (int): Student user ID

        Returns:
            Dict[str, Any]: Totals, recent activity and most visited programs
        """
        week_ago = (self.clock() - timedelta(days=7)).strftime(TIMESTAMP_FORMAT)

        totals = self.db.execute_query(
            """SELECT COUNT(*) as total_check_ins,
                      COUNT(DISTINCT program_id) as unique_programs,
                      COUNT(DISTINCT qr_code_id) as unique_locations,
                      MAX(check_in_time) as last_check_in
               FROM check_ins WHERE student_id = ?""",
            (student_id,),
            fetch_all=False
        )

        recent = self.db.execute_query(
            "SELECT COUNT(*) as count FROM check_ins WHERE student_id = ? AND check_in_time > ?",
            (student_id, week_ago),
            fetch_all=False
        )

        most_visited = self.db.execute_query(
            """SELECT lp.name as program_name, COUNT(*) as visit_count
               FROM check_ins ci
               JOIN learning_programs lp ON ci.program_id = lp.id
               WHERE ci.student_id = ?
               GROUP BY ci.program_id, lp.name
               ORDER BY visit_count DESC
               LIMIT 5""",
            (student_id,)
        )

        return {
            'totalCheckIns': totals['total_check_ins'],
            'uniquePrograms': totals['unique_programs'],
            'uniqueLocations': totals['unique_locations'],
            'recentCheckIns': recent['count'],
            'mostVisitedPrograms': most_visited,
            'lastCheckIn': totals['last_check_in']
        }

    def get_summary(self, days: int = 7) -> Dict[str, Any]:
        """
        Get a check-in summary across all students for the admin dashboard.

        Args:
            days (int): Number of days to look back

        Returns:
            Dict[str, Any]: Totals and daily breakdown
        """
        cutoff = (self.clock() - timedelta(days=days)).strftime(TIMESTAMP_FORMAT)

        totals = self.db.execute_query(
            """SELECT COUNT(*) as total_check_ins,
                      COUNT(DISTINCT student_id) as unique_students,
                      COUNT(DISTINCT program_id) as unique_programs
               FROM check_ins WHERE check_in_time > ?""",
            (cutoff,),
            fetch_all=False
        )

        daily_breakdown = self.db.execute_query(
            """SELECT date(check_in_time) as date, COUNT(*) as count
               FROM check_ins
               WHERE check_in_time > ?
               GROUP BY date(check_in_time)
               ORDER BY date""",
            (cutoff,)
        )

        return {
            'totalCheckIns': totals['total_check_ins'],
            'uniqueStudents': totals['unique_students'],
            'uniquePrograms': totals['unique_programs'],
            'dailyBreakdown': daily_breakdown,
            'dateRange': days
        }

    def get_check_ins_between(self, start_date: str, end_date: str,
                              limit: int = 10000) -> List[Dict[str, Any]]:
        """
        Get all check-ins whose date falls in [start_date, end_date].

        Args:
            start_date (str): Start date (YYYY-MM-DD)
            end_date (str): End date (YYYY-MM-DD)
            limit (int): Maximum number of records

        Returns:
            List[Dict[str, Any]]: Check-ins with student and program names
        """
        return self.db.execute_query(
            """SELECT ci.id, ci.check_in_time, ci.location,
                      u.id as student_id, u.username as student_username, u.full_name as student_name,
                      lp.id as program_id, lp.name as program_name,
                      qr.location_name as qr_location
               FROM check_ins ci
               JOIN users u ON ci.student_id = u.id
               JOIN learning_programs lp ON ci.program_id = lp.id
               JOIN qr_codes qr ON ci.qr_code_id = qr.id
               WHERE date(ci.check_in_time) BETWEEN ? AND ?
               ORDER BY ci.check_in_time, ci.id
               LIMIT ?""",
            (start_date, end_date, limit)
        )
