from trailtag.modules.qr_generator import parse_checkin_uri


def test_admin_creates_program(client, admin_headers):
    response = client.post('/api/programs', headers=admin_headers,
                           json={'name': 'Bird Watching', 'description': 'Morning walk', 'location': 'Wetlands'})

    assert response.status_code == 201
    program = response.get_json()['program']
    assert program['name'] == 'Bird Watching'
    assert program['creator_name'] == 'System Administrator'


def test_program_name_required(client, admin_headers):
    response = client.post('/api/programs', headers=admin_headers, json={'description': 'No name'})
    assert response.status_code == 400


def test_students_cannot_create_programs(client, student_headers):
    response = client.post('/api/programs', headers=student_headers, json={'name': 'Sneaky'})
    assert response.status_code == 403


def test_list_get_update_delete_program(client, admin_headers, student_headers, program):
    programs = client.get('/api/programs', headers=student_headers).get_json()['programs']
    assert [p['id'] for p in programs] == [program['id']]

    response = client.put(f"/api/programs/{program['id']}", headers=admin_headers, json={'location': 'South Gate'})
    assert response.status_code == 200
    assert response.get_json()['program']['location'] == 'South Gate'

    response = client.put(f"/api/programs/{program['id']}", headers=admin_headers, json={'name': '  '})
    assert response.status_code == 400

    assert client.delete(f"/api/programs/{program['id']}", headers=admin_headers).status_code == 200
    assert client.get('/api/programs', headers=student_headers).get_json()['programs'] == []

    assert client.get('/api/programs/9999', headers=student_headers).status_code == 404
    assert client.delete('/api/programs/9999', headers=admin_headers).status_code == 404


def test_my_programs_and_search(client, managers, admin, admin_headers, program):
    managers['programs'].create_program({'name': 'Pottery Class', 'location': 'Studio'}, admin['id'])

    mine = client.get('/api/programs/my', headers=admin_headers).get_json()['programs']
    assert len(mine) == 2

    found = client.get('/api/programs/search/studio', headers=admin_headers).get_json()['programs']
    assert [p['name'] for p in found] == ['Pottery Class']


def test_program_stats(client, managers, student, admin_headers, program, qr_code):
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])

    stats = client.get(f"/api/programs/{program['id']}/stats", headers=admin_headers).get_json()['stats']
    assert stats == {
        'totalQRCodes': 1,
        'totalCheckIns': 1,
        'uniqueStudents': 1,
        'lastCheckIn': '2026-03-02 09:00:00'
    }


def test_create_qr_code(client, admin_headers, program):
    response = client.post('/api/qrcodes', headers=admin_headers,
                           json={'program_id': program['id'], 'location_name': 'Visitor Center'})

    assert response.status_code == 201
    qr_code = response.get_json()['qrCode']
    payload = parse_checkin_uri(qr_code['qr_code_data'])
    assert payload.program_id == program['id']
    assert payload.location == 'Visitor Center'
    assert payload.issued_at == qr_code['issued_at']


def test_one_qr_code_per_program(client, admin_headers, program, qr_code):
    response = client.post('/api/qrcodes', headers=admin_headers,
                           json={'program_id': program['id'], 'location_name': 'Second Spot'})
    assert response.status_code == 409


def test_qr_code_requires_active_program_and_location(client, managers, admin, admin_headers, program):
    response = client.post('/api/qrcodes', headers=admin_headers, json={'program_id': program['id']})
    assert response.status_code == 400

    managers['programs'].delete_program(program['id'], admin['id'])
    response = client.post('/api/qrcodes', headers=admin_headers,
                           json={'program_id': program['id'], 'location_name': 'Gate'})
    assert response.status_code == 404


def test_location_update_regenerates_payload(client, admin_headers, program, qr_code):
    response = client.put(f"/api/qrcodes/{qr_code['id']}", headers=admin_headers,
                          json={'location_name': 'Lakeside'})

    assert response.status_code == 200
    updated = response.get_json()['qrCode']
    assert updated['location_name'] == 'Lakeside'
    assert parse_checkin_uri(updated['qr_code_data']).location == 'Lakeside'


def test_list_validate_and_deactivate_qr_code(client, admin_headers, student_headers, program, qr_code):
    codes = client.get('/api/qrcodes', headers=student_headers).get_json()['qrCodes']
    assert [c['id'] for c in codes] == [qr_code['id']]
    assert codes[0]['program_name'] == 'Forest Trail Walk'

    program_codes = client.get(f"/api/qrcodes/program/{program['id']}", headers=student_headers).get_json()
    assert len(program_codes['qrCodes']) == 1

    response = client.post('/api/qrcodes/validate', headers=student_headers,
                           json={'qr_code_data': qr_code['qr_code_data']})
    assert response.status_code == 200
    assert response.get_json()['valid'] is True

    assert client.delete(f"/api/qrcodes/{qr_code['id']}", headers=admin_headers).status_code == 200

    response = client.post('/api/qrcodes/validate', headers=student_headers,
                           json={'qr_code_data': qr_code['qr_code_data']})
    assert response.status_code == 404
    assert client.get('/api/qrcodes', headers=student_headers).get_json()['qrCodes'] == []


def test_reactivate_qr_code(client, managers, admin_headers, student, qr_code):
    client.delete(f"/api/qrcodes/{qr_code['id']}", headers=admin_headers)
    response = client.put(f"/api/qrcodes/{qr_code['id']}", headers=admin_headers, json={'is_active': True})
    assert response.status_code == 200

    confirmation = managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])
    assert confirmation.location == 'North Gate'


def test_qr_code_stats_and_image(client, managers, student, admin_headers, qr_code):
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])

    stats = client.get(f"/api/qrcodes/{qr_code['id']}/stats", headers=admin_headers).get_json()['stats']
    assert stats['totalCheckIns'] == 1
    assert stats['uniqueStudents'] == 1

    response = client.get(f"/api/qrcodes/{qr_code['id']}/image", headers=admin_headers)
    assert response.status_code == 200
    assert response.mimetype == 'image/png'
    assert response.data.startswith(b'\x89PNG')

    assert client.get('/api/qrcodes/9999/image', headers=admin_headers).status_code == 404
    assert client.get('/api/qrcodes/9999/stats', headers=admin_headers).status_code == 404


def test_qr_code_is_active_must_be_boolean(client, managers, admin_headers, qr_code):
    managers['qrcodes'].delete_qr_code(qr_code['id'])

    response = client.put(f"/api/qrcodes/{qr_code['id']}", headers=admin_headers, json={'is_active': 'false'})
    assert response.status_code == 400
    assert managers['qrcodes'].get_qr_code_by_id(qr_code['id'])['is_active'] == 0

    response = client.put(f"/api/qrcodes/{qr_code['id']}", headers=admin_headers, json={'is_active': 1})
    assert response.status_code == 200
    assert response.get_json()['qrCode']['is_active'] == 1
