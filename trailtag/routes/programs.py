"""
Learning Program API Routes
"""

from flask import Blueprint, g, jsonify

from trailtag.routes.decorators import (
    managers, token_required, role_required, result_response, error_response, json_body
)

programs_bp = Blueprint('programs', __name__, url_prefix='/api/programs')


@programs_bp.route('', methods=['GET'])
@token_required
def list_programs():
    """List active programs"""
    return jsonify({'success': True, 'programs': managers()['programs'].get_all_programs()})


@programs_bp.route('', methods=['POST'])
@role_required('admin')
def create_program():
    result = managers()['programs'].create_program(json_body(), g.current_user['id'])
    return result_response(result, 201)


@programs_bp.route('/my', methods=['GET'])
@token_required
def my_programs():
    """Programs created by the caller"""
    programs = managers()['programs'].get_programs_by_creator(g.current_user['id'])
    return jsonify({'success': True, 'programs': programs})


@programs_bp.route('/search/<term>', methods=['GET'])
@token_required
def search_programs(term):
    return jsonify({'success': True, 'programs': managers()['programs'].search_programs(term)})


@programs_bp.route('/<int:program_id>', methods=['GET'])
@token_required
def get_program(program_id):
    program = managers()['programs'].get_program_by_id(program_id)
    if not program:
        return error_response('Program not found', 404, 'not_found')
    return jsonify({'success': True, 'program': program})


@programs_bp.route('/<int:program_id>', methods=['PUT'])
@role_required('admin')
def update_program(program_id):
    result = managers()['programs'].update_program(program_id, json_body())
    return result_response(result)


@programs_bp.route('/<int:program_id>', methods=['DELETE'])
@role_required('admin')
def delete_program(program_id):
    """Soft delete a program"""
    if not managers()['programs'].delete_program(program_id, g.current_user['id']):
        return error_response('Program not found', 404, 'not_found')
    return jsonify({'success': True, 'message': 'Program deleted successfully'})


@programs_bp.route('/<int:program_id>/stats', methods=['GET'])
@token_required
def program_stats(program_id):
    stats = managers()['programs'].get_program_stats(program_id)
    if stats is None:
        return error_response('Program not found', 404, 'not_found')
    return jsonify({'success': True, 'stats': stats})
