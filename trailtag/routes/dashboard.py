"""
Dashboard API Routes
"""

from flask import Blueprint, g, jsonify

from trailtag.routes.decorators import managers, token_required, role_required, int_arg

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/api/dashboard')


@dashboard_bp.route('/admin/stats', methods=['GET'])
@role_required('admin')
def admin_stats():
    stats = managers()['dashboard'].get_admin_stats(int_arg('days', 30))
    return jsonify({'success': True, 'stats': stats})


@dashboard_bp.route('/student/stats', methods=['GET'])
@token_required
def student_stats():
    stats = managers()['dashboard'].get_student_stats(g.current_user['id'], int_arg('days', 30))
    return jsonify({'success': True, 'stats': stats})


@dashboard_bp.route('/parent/stats', methods=['GET'])
@role_required('parent')
def parent_stats():
    """Activity of the students the parent monitors"""
    stats = managers()['dashboard'].get_parent_stats(g.current_user['id'], int_arg('days', 30))
    return jsonify({'success': True, 'stats': stats})


@dashboard_bp.route('/system/health', methods=['GET'])
@role_required('admin')
def system_health():
    health = managers()['dashboard'].get_system_health()
    status = 200 if health['status'] == 'healthy' else 500
    return jsonify({'success': health['status'] == 'healthy', 'health': health}), status
