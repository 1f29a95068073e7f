from conftest import auth_headers, login, make_user


def post_check_in(client, headers, qr_code_data, **kwargs):
    return client.post('/api/checkins', json={'qr_code_data': qr_code_data}, headers=headers, **kwargs)


def test_check_in_success(client, student_headers, qr_code):
    response = post_check_in(client, student_headers, qr_code['qr_code_data'])

    assert response.status_code == 201
    data = response.get_json()
    assert data['success'] is True
    assert data['checkIn']['program_name'] == 'Forest Trail Walk'
    assert data['checkIn']['location'] == 'North Gate'
    assert data['checkIn']['check_in_time'] == '2026-03-02 09:00:00'


def test_duplicate_check_in_returns_409(client, clock, student_headers, qr_code):
    post_check_in(client, student_headers, qr_code['qr_code_data'])
    clock.advance(minutes=2)
    response = post_check_in(client, student_headers, qr_code['qr_code_data'])

    assert response.status_code == 409
    data = response.get_json()
    assert data['success'] is False
    assert data['error_type'] == 'duplicate_checkin'
    assert data['message'] == 'You have already checked in recently for this program'


def test_malformed_check_in_returns_400(client, student_headers, qr_code):
    response = post_check_in(client, student_headers, 'trailtag://checkin?program=abc&location=Hall')

    assert response.status_code == 400
    assert response.get_json()['error_type'] == 'malformed_code'


def test_missing_qr_data_returns_400(client, student_headers):
    response = client.post('/api/checkins', json={}, headers=student_headers)
    assert response.status_code == 400


def test_unknown_code_returns_404(client, student_headers, qr_code):
    response = post_check_in(client, student_headers, 'trailtag://checkin?program=4040&location=Hall&t=1')

    assert response.status_code == 404
    assert response.get_json()['error_type'] == 'unknown_code'


def test_error_message_uses_student_language(client, managers, clock, qr_code):
    make_user(managers, 'park_seoyeon', 'student', language='ko')
    headers = auth_headers(login(managers, 'park_seoyeon'))

    post_check_in(client, headers, qr_code['qr_code_data'])
    response = post_check_in(client, headers, qr_code['qr_code_data'])

    assert response.status_code == 409
    assert response.get_json()['message'] == '이 프로그램에 최근 이미 체크인했습니다'


def test_only_students_can_check_in(client, parent_headers, admin_headers, qr_code):
    assert post_check_in(client, parent_headers, qr_code['qr_code_data']).status_code == 403
    assert post_check_in(client, admin_headers, qr_code['qr_code_data']).status_code == 403


def test_check_in_requires_token(client, qr_code):
    response = client.post('/api/checkins', json={'qr_code_data': qr_code['qr_code_data']})
    assert response.status_code == 401


def test_invalid_token_rejected(client, qr_code):
    response = post_check_in(client, auth_headers('not-a-jwt'), qr_code['qr_code_data'])
    assert response.status_code == 403


def test_history_today_and_stats(client, student_headers, qr_code):
    post_check_in(client, student_headers, qr_code['qr_code_data'])

    history = client.get('/api/checkins/history?limit=10', headers=student_headers).get_json()
    assert len(history['checkIns']) == 1
    assert history['checkIns'][0]['program_name'] == 'Forest Trail Walk'

    today = client.get('/api/checkins/today', headers=student_headers).get_json()
    assert len(today['checkIns']) == 1

    stats = client.get('/api/checkins/stats', headers=student_headers).get_json()['stats']
    assert stats['totalCheckIns'] == 1


def test_parent_reads_linked_student_history(client, managers, parent, student, student_headers,
                                            parent_headers, qr_code):
    post_check_in(client, student_headers, qr_code['qr_code_data'])
    managers['users'].link_student(parent['id'], student['id'])

    response = client.get(f"/api/checkins/student/{student['id']}/history", headers=parent_headers)
    assert response.status_code == 200
    assert len(response.get_json()['checkIns']) == 1

    response = client.get(f"/api/checkins/student/{student['id']}/today", headers=parent_headers)
    assert response.status_code == 200
    assert len(response.get_json()['checkIns']) == 1


def test_parent_cannot_read_unlinked_student(client, student, parent_headers):
    response = client.get(f"/api/checkins/student/{student['id']}/history", headers=parent_headers)
    assert response.status_code == 403

    response = client.get(f"/api/checkins/student/{student['id']}/today", headers=parent_headers)
    assert response.status_code == 403


def test_summary_is_admin_only(client, admin_headers, student_headers, qr_code):
    post_check_in(client, student_headers, qr_code['qr_code_data'])

    assert client.get('/api/checkins/summary', headers=student_headers).status_code == 403

    summary = client.get('/api/checkins/summary?days=7', headers=admin_headers).get_json()['summary']
    assert summary['totalCheckIns'] == 1
    assert summary['uniqueStudents'] == 1


def test_oversized_program_id_returns_400(client, student_headers, qr_code):
    response = post_check_in(client, student_headers, f"trailtag://checkin?program={'9' * 30}&location=Hall&t=1")

    assert response.status_code == 400
    assert response.get_json()['error_type'] == 'malformed_code'
