"""
QR Code Manager Module - TrailTag

This module manages the QR code attached to each learning program. A
program has at most one QR code; the code stores the encoded check-in
payload together with a human-readable location label.

Features:
- QR code creation for a program
- Location changes (payload regenerated) and activation toggling
- Soft deletion
- Raw payload validation
- Usage statistics
- PNG rendering for printing
"""

from typing import Dict, List, Any, Optional
import logging
import time

from trailtag.modules.database_manager import to_flag
from trailtag.modules.qr_generator import QRGenerator

QR_SELECT = """
    SELECT qr.*, lp.name as program_name, lp.description as program_description
    FROM qr_codes qr
    JOIN learning_programs lp ON qr.program_id = lp.id
"""

class QRCodeManager:
    """
    QR code administration for learning programs.
    """

    def __init__(self, database_manager, qr_generator: Optional[QRGenerator] = None):
        """
        Initialize the QR code manager.

        Args:
            database_manager: Database manager instance
            qr_generator (QRGenerator): Payload builder and image renderer
        """
        self.db = database_manager
        self.qr_generator = qr_generator or QRGenerator()
        self.logger = logging.getLogger(__name__)

    def create_qr_code(self, program_id: int, location_name: str) -> Dict[str, Any]:
        """
        Create the QR code for a program.

        Args:
            program_id (int): Active program ID
            location_name (str): Location label embedded in the payload

        Returns:
            Dict[str, Any]: Creation result
        """
        location_name = (location_name or '').strip()
        if not program_id or not location_name:
            return {
                'success': False,
                'error': 'Program ID and location name are required',
                'error_type': 'validation_error'
            }

        program = self.db.execute_query(
            "SELECT id FROM learning_programs WHERE id = ? AND is_active = 1",
            (program_id,),
            fetch_all=False
        )
        if not program:
            return {
                'success': False,
                'error': 'Program not found',
                'error_type': 'not_found'
            }

        existing = self.db.execute_query(
            "SELECT id FROM qr_codes WHERE program_id = ?",
            (program_id,),
            fetch_all=False
        )
        if existing:
            return {
                'success': False,
                'error': 'QR code for this program already exists',
                'error_type': 'conflict'
            }

        issued_at = int(time.time())
        qr_code_data = self.qr_generator.build_payload(program_id, location_name, issued_at)

        try:
            qr_code_id = self.db.execute_update(
                """INSERT INTO qr_codes (program_id, qr_code_data, location_name, issued_at)
                   VALUES (?, ?, ?, ?)""",
                (program_id, qr_code_data, location_name, issued_at)
            )
        except Exception as e:
            self.logger.error(f"QR code creation failed for program {program_id}: {str(e)}")
            return {
                'success': False,
                'error': 'Failed to create QR code',
                'error_type': 'system_error'
            }

        self.logger.info(f"QR code created for program {program_id} at {location_name!r} (ID: {qr_code_id})")
        return {
            'success': True,
            'qrCode': self.get_qr_code_by_id(qr_code_id),
            'message': 'QR code created successfully'
        }

    def update_qr_code(self, qr_code_id: int, update_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a QR code's location or active flag.

        A location change regenerates the payload with a fresh issuance time.

        Args:
            qr_code_id (int): QR code ID
            update_data (Dict[str, Any]): location_name and/or is_active

        Returns:
            Dict[str, Any]: Update result
        """
        qr_code = self.get_qr_code_by_id(qr_code_id)
        if not qr_code:
            return {
                'success': False,
                'error': 'QR code not found',
                'error_type': 'not_found'
            }

        update_fields = []
        params = []

        if 'location_name' in update_data:
            location_name = (update_data['location_name'] or '').strip()
            if not location_name:
                return {
                    'success': False,
                    'error': 'Location name is required',
                    'error_type': 'validation_error'
                }
            issued_at = int(time.time())
            update_fields.extend(["location_name = ?", "qr_code_data = ?", "issued_at = ?"])
            params.extend([
                location_name,
                self.qr_generator.build_payload(qr_code['program_id'], location_name, issued_at),
                issued_at
            ])

        if 'is_active' in update_data:
            is_active = to_flag(update_data['is_active'])
            if is_active is None:
                return {
                    'success': False,
                    'error': 'is_active must be a boolean',
                    'error_type': 'validation_error'
                }
            update_fields.append("is_active = ?")
            params.append(is_active)

        if not update_fields:
            return {
                'success': False,
                'error': 'No valid fields to update',
                'error_type': 'validation_error'
            }

        update_fields.append("updated_at = CURRENT_TIMESTAMP")
        params.append(qr_code_id)
        self.db.execute_update(
            f"UPDATE qr_codes SET {', '.join(update_fields)} WHERE id = ?",
            params
        )

        self.logger.info(f"QR code {qr_code_id} updated successfully")
        return {
            'success': True,
            'qrCode': self.get_qr_code_by_id(qr_code_id),
            'message': 'QR code updated successfully'
        }

    def delete_qr_code(self, qr_code_id: int) -> bool:
        """Soft delete a QR code (mark as inactive)."""
        affected_rows = self.db.execute_update(
            "UPDATE qr_codes SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (qr_code_id,)
        )
        if affected_rows > 0:
            self.logger.info(f"QR code {qr_code_id} deactivated")
            return True
        return False

    def get_all_qr_codes(self) -> List[Dict[str, Any]]:
        """Get active QR codes of active programs."""
        return self.db.execute_query(
            QR_SELECT + " WHERE qr.is_active = 1 AND lp.is_active = 1 ORDER BY qr.created_at DESC, qr.id DESC"
        )

    def get_qr_code_by_id(self, qr_code_id: int) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(QR_SELECT + " WHERE qr.id = ?", (qr_code_id,), fetch_all=False)

    def get_program_qr_codes(self, program_id: int) -> List[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT * FROM qr_codes WHERE program_id = ? AND is_active = 1 ORDER BY created_at DESC",
            (program_id,)
        )

    def validate_qr_data(self, qr_code_data: str) -> Optional[Dict[str, Any]]:
        """
        Look up an active QR code by its exact stored payload.

        Args:
            qr_code_data (str): Raw payload

        Returns:
            Dict[str, Any]: QR code joined with its program, or None
        """
        return self.db.execute_query(
            QR_SELECT + " WHERE qr.qr_code_data = ? AND qr.is_active = 1 AND lp.is_active = 1",
            (qr_code_data,),
            fetch_all=False
        )

    def get_qr_code_stats(self, qr_code_id: int) -> Optional[Dict[str, Any]]:
        """
        Get usage statistics for a QR code.

        Args:
            qr_code_id (int): QR code ID

        Returns:
            Dict[str, Any]: Check-in totals and last check-in, or None if not found
        """
        if not self.get_qr_code_by_id(qr_code_id):
            return None

        result = self.db.execute_query(
            """SELECT COUNT(*) as total, COUNT(DISTINCT student_id) as unique_students,
                      MAX(check_in_time) as last_check_in
               FROM check_ins WHERE qr_code_id = ?""",
            (qr_code_id,),
            fetch_all=False
        )
        return {
            'totalCheckIns': result['total'],
            'uniqueStudents': result['unique_students'],
            'lastCheckIn': result['last_check_in']
        }

    def render_qr_code(self, qr_code_id: int) -> Optional[Dict[str, Any]]:
        """Render a stored QR code as PNG, or None if it does not exist."""
        qr_code = self.get_qr_code_by_id(qr_code_id)
        if not qr_code:
            return None
        return self.qr_generator.render_qr_image(qr_code['qr_code_data'])
