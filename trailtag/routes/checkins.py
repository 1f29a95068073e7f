"""
Check-in API Routes

POST /api/checkins takes the raw scanned string. Malformed, unknown and
duplicate scans raise CheckInError subclasses, answered by the error
handler registered in create_app.
"""

from flask import Blueprint, current_app, g, jsonify, request, send_file

from trailtag.routes.decorators import (
    managers, token_required, role_required, result_response, error_response, json_body, int_arg
)

checkins_bp = Blueprint('checkins', __name__, url_prefix='/api/checkins')


@checkins_bp.route('', methods=['POST'])
@role_required('student')
def check_in():
    """Record a check-in from a scanned QR payload"""
    qr_code_data = json_body().get('qr_code_data')
    confirmation = managers()['checkins'].process_check_in(g.current_user['id'], qr_code_data)
    return jsonify({
        'success': True,
        'message': 'Check-in successful!',
        'checkIn': confirmation.to_dict()
    }), 201


@checkins_bp.route('/history', methods=['GET'])
@token_required
def history():
    limit = int_arg('limit', current_app.config['CHECKIN_HISTORY_DEFAULT_LIMIT'])
    check_ins = managers()['checkins'].get_student_history(g.current_user['id'], limit)
    return jsonify({'success': True, 'checkIns': check_ins})


@checkins_bp.route('/today', methods=['GET'])
@token_required
def today():
    check_ins = managers()['checkins'].get_today_check_ins(g.current_user['id'])
    return jsonify({'success': True, 'checkIns': check_ins})


def _linked_or_forbidden(student_id):
    if not managers()['users'].is_linked(g.current_user['id'], student_id):
        return error_response('You do not have permission to view this student\'s data', 403, 'forbidden')
    return None


@checkins_bp.route('/student/<int:student_id>/history', methods=['GET'])
@role_required('parent')
def student_history(student_id):
    """Check-in history of a student the parent monitors"""
    denied = _linked_or_forbidden(student_id)
    if denied:
        return denied
    limit = int_arg('limit', current_app.config['CHECKIN_HISTORY_DEFAULT_LIMIT'])
    check_ins = managers()['checkins'].get_student_history(student_id, limit)
    return jsonify({'success': True, 'checkIns': check_ins})


@checkins_bp.route('/student/<int:student_id>/today', methods=['GET'])
@role_required('parent')
def student_today(student_id):
    denied = _linked_or_forbidden(student_id)
    if denied:
        return denied
    check_ins = managers()['checkins'].get_today_check_ins(student_id)
    return jsonify({'success': True, 'checkIns': check_ins})


@checkins_bp.route('/stats', methods=['GET'])
@token_required
def stats():
    return jsonify({'success': True, 'stats': managers()['checkins'].get_student_stats(g.current_user['id'])})


@checkins_bp.route('/summary', methods=['GET'])
@role_required('admin')
def summary():
    """Check-in summary across all students"""
    days = int_arg('days', 7)
    return jsonify({'success': True, 'summary': managers()['checkins'].get_summary(days)})


@checkins_bp.route('/export', methods=['GET'])
@role_required('admin')
def export():
    """Download check-ins for a date range as CSV or Excel"""
    start_date = request.args.get('start_date')
    end_date = request.args.get('end_date')
    if not start_date or not end_date:
        return error_response('start_date and end_date are required', 400, 'validation_error')

    result = managers()['reports'].export_check_ins(
        start_date, end_date, request.args.get('format', 'csv')
    )
    if not result['success']:
        return result_response(result)

    return send_file(result['filepath'], as_attachment=True, download_name=result['filename'])
