"""
QR Code API Routes

Admins create and maintain one QR code per program; any authenticated
user may list codes, validate a scanned payload or fetch a printable PNG.
"""

import io

from flask import Blueprint, jsonify, send_file

from trailtag.routes.decorators import (
    managers, token_required, role_required, result_response, error_response, json_body
)

qrcodes_bp = Blueprint('qrcodes', __name__, url_prefix='/api/qrcodes')


@qrcodes_bp.route('', methods=['GET'])
@token_required
def list_qr_codes():
    return jsonify({'success': True, 'qrCodes': managers()['qrcodes'].get_all_qr_codes()})


@qrcodes_bp.route('/program/<int:program_id>', methods=['GET'])
@token_required
def program_qr_codes(program_id):
    return jsonify({'success': True, 'qrCodes': managers()['qrcodes'].get_program_qr_codes(program_id)})


@qrcodes_bp.route('', methods=['POST'])
@role_required('admin')
def create_qr_code():
    """Create the QR code for a program"""
    data = json_body()
    result = managers()['qrcodes'].create_qr_code(data.get('program_id'), data.get('location_name'))
    return result_response(result, 201)


@qrcodes_bp.route('/<int:qr_code_id>', methods=['PUT'])
@role_required('admin')
def update_qr_code(qr_code_id):
    result = managers()['qrcodes'].update_qr_code(qr_code_id, json_body())
    return result_response(result)


@qrcodes_bp.route('/<int:qr_code_id>', methods=['DELETE'])
@role_required('admin')
def delete_qr_code(qr_code_id):
    if not managers()['qrcodes'].delete_qr_code(qr_code_id):
        return error_response('QR code not found', 404, 'not_found')
    return jsonify({'success': True, 'message': 'QR code deleted successfully'})


@qrcodes_bp.route('/validate', methods=['POST'])
@token_required
def validate_qr_code():
    """Check a raw payload against the stored active codes"""
    qr_code_data = json_body().get('qr_code_data')
    if not qr_code_data:
        return error_response('QR code data is required', 400, 'validation_error')

    qr_code = managers()['qrcodes'].validate_qr_data(qr_code_data)
    if not qr_code:
        return error_response('Invalid or inactive QR code', 404, 'not_found')
    return jsonify({'success': True, 'valid': True, 'qrCode': qr_code})


@qrcodes_bp.route('/<int:qr_code_id>/stats', methods=['GET'])
@token_required
def qr_code_stats(qr_code_id):
    stats = managers()['qrcodes'].get_qr_code_stats(qr_code_id)
    if stats is None:
        return error_response('QR code not found', 404, 'not_found')
    return jsonify({'success': True, 'stats': stats})


@qrcodes_bp.route('/<int:qr_code_id>/image', methods=['GET'])
@token_required
def qr_code_image(qr_code_id):
    """Printable PNG of a QR code"""
    image = managers()['qrcodes'].render_qr_code(qr_code_id)
    if image is None:
        return error_response('QR code not found', 404, 'not_found')
    return send_file(
        io.BytesIO(image['image_png']),
        mimetype='image/png',
        download_name=f"qrcode_{qr_code_id}.png"
    )
