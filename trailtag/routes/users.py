"""
User API Routes

Admin user administration plus the parent endpoints for finding students
and managing the monitoring list.
"""

from flask import Blueprint, g, jsonify, request

from trailtag.routes.decorators import (
    managers, role_required, result_response, error_response, json_body, int_arg
)

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


@users_bp.route('/students/search', methods=['GET'])
@role_required('parent')
def search_students():
    """Search students by name and/or phone"""
    name = request.args.get('name')
    phone = request.args.get('phone')
    if not name and not phone:
        return error_response('Name or phone parameter is required', 400, 'validation_error')
    return jsonify({'success': True, 'students': managers()['users'].search_students(name, phone)})


@users_bp.route('/my-students', methods=['GET'])
@role_required('parent')
def my_students():
    students = managers()['users'].get_linked_students(g.current_user['id'])
    return jsonify({'success': True, 'students': students})


@users_bp.route('/add-student', methods=['POST'])
@role_required('parent')
def add_student():
    data = json_body()
    result = managers()['users'].link_student(
        g.current_user['id'],
        data.get('student_id'),
        data.get('relationship_type', 'parent')
    )
    return result_response(result, 201)


@users_bp.route('/remove-student/<int:student_id>', methods=['DELETE'])
@role_required('parent')
def remove_student(student_id):
    result = managers()['users'].unlink_student(g.current_user['id'], student_id)
    return result_response(result)


@users_bp.route('', methods=['POST'])
@role_required('admin')
def create_user():
    result = managers()['users'].create_user(json_body(), g.current_user['id'])
    return result_response(result, 201)


@users_bp.route('', methods=['GET'])
@role_required('admin')
def list_users():
    """List users with optional user_type filter and pagination"""
    result = managers()['users'].get_users(
        user_type=request.args.get('user_type'),
        page=int_arg('page', 1),
        limit=int_arg('limit', 50)
    )
    return jsonify({'success': True, **result})


@users_bp.route('/<int:user_id>', methods=['GET'])
@role_required('admin')
def get_user(user_id):
    user = managers()['users'].get_user_by_id(user_id)
    if not user:
        return error_response('User not found', 404, 'not_found')
    return jsonify({'success': True, 'user': user})


@users_bp.route('/<int:user_id>', methods=['PUT'])
@role_required('admin')
def update_user(user_id):
    result = managers()['users'].update_user(user_id, json_body())
    return result_response(result)


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@role_required('admin')
def delete_user(user_id):
    result = managers()['users'].delete_user(user_id, g.current_user['id'])
    return result_response(result)
