import os
from datetime import datetime, timedelta

import pandas as pd


def test_admin_dashboard(client, managers, clock, admin_headers, student, other_student, qr_code):
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])
    managers['checkins'].process_check_in(other_student['id'], qr_code['qr_code_data'])
    clock.advance(hours=2)
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])

    stats = client.get('/api/dashboard/admin/stats?days=30', headers=admin_headers).get_json()['stats']

    assert stats['overview']['totalCheckIns'] == 3
    assert stats['overview']['totalPrograms'] == 1
    assert stats['overview']['totalQRCodes'] == 1
    assert stats['usersByType'] == {'admin': 1, 'student': 2}
    assert stats['activePrograms'][0]['check_in_count'] == 3
    assert stats['activeStudents'][0]['id'] == student['id']
    assert stats['qrUsage'][0]['usage_count'] == 3
    assert stats['dailyTrends'] == [{'date': '2026-03-02', 'count': 3}]
    assert stats['period'] == '30 days'


def test_student_dashboard(client, managers, student, student_headers, qr_code):
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])

    stats = client.get('/api/dashboard/student/stats', headers=student_headers).get_json()['stats']

    assert stats['overview']['totalCheckIns'] == 1
    assert stats['overview']['todayCheckIns'] == 1
    assert stats['overview']['weekCheckIns'] == 1
    assert stats['favoritePrograms'] == [{'name': 'Forest Trail Walk', 'visit_count': 1}]
    assert stats['recentActivity'][0]['location_name'] == 'North Gate'


def test_parent_dashboard(client, managers, parent, parent_headers, student, qr_code):
    stats = client.get('/api/dashboard/parent/stats', headers=parent_headers).get_json()['stats']
    assert stats['overview'] == {'monitoredStudents': 0}

    managers['users'].link_student(parent['id'], student['id'])
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])

    stats = client.get('/api/dashboard/parent/stats', headers=parent_headers).get_json()['stats']
    assert stats['overview']['monitoredStudents'] == 1
    assert stats['overview']['totalCheckIns'] == 1
    assert stats['studentActivity'][0]['student']['id'] == student['id']
    assert stats['studentActivity'][0]['lastCheckIn'] == '2026-03-02 09:00:00'
    assert stats['popularPrograms'][0]['name'] == 'Forest Trail Walk'


def test_dashboard_roles(client, student_headers, parent_headers):
    assert client.get('/api/dashboard/admin/stats', headers=student_headers).status_code == 403
    assert client.get('/api/dashboard/parent/stats', headers=student_headers).status_code == 403
    assert client.get('/api/dashboard/admin/stats', headers=parent_headers).status_code == 403


def test_system_health(client, managers, admin_headers, student, qr_code):
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])

    response = client.get('/api/dashboard/system/health', headers=admin_headers)
    assert response.status_code == 200
    health = response.get_json()['health']
    assert health['status'] == 'healthy'
    assert health['database']['tables'] >= 6
    assert health['database']['records'] == {
        'users': 2,
        'learning_programs': 1,
        'qr_codes': 1,
        'check_ins': 1
    }


def test_export_csv(client, managers, admin_headers, student, qr_code):
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])

    response = client.get('/api/checkins/export?start_date=2026-03-01&end_date=2026-03-31&format=csv',
                          headers=admin_headers)

    assert response.status_code == 200
    lines = response.data.decode('utf-8').splitlines()
    assert lines[0] == 'Check-in ID,Check-in Time,Username,Student,Program,Location,QR Location'
    assert 'kim_minji' in lines[1]
    assert len(lines) == 2


def test_export_excel(managers, student, qr_code):
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])

    result = managers['reports'].export_check_ins('2026-03-02', '2026-03-02', 'excel')

    assert result['success'] is True
    assert result['records'] == 1
    sheets = pd.read_excel(result['filepath'], sheet_name=None)
    assert list(sheets) == ['Check-ins', 'By Program', 'By Day']
    assert sheets['By Program'].iloc[0]['Check-ins'] == 1


def test_export_validation(client, admin_headers, student_headers):
    url = '/api/checkins/export'
    assert client.get(url, headers=student_headers).status_code == 403
    assert client.get(url, headers=admin_headers).status_code == 400
    assert client.get(f'{url}?start_date=03/01/2026&end_date=2026-03-31', headers=admin_headers).status_code == 400
    assert client.get(f'{url}?start_date=2026-03-31&end_date=2026-03-01', headers=admin_headers).status_code == 400
    assert client.get(f'{url}?start_date=2026-03-01&end_date=2026-03-31&format=pdf',
                      headers=admin_headers).status_code == 400
    assert client.get(f'{url}?start_date=2026-03-01&end_date=2026-03-31', headers=admin_headers).status_code == 404


def test_delete_old_reports(managers, student, qr_code):
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])
    result = managers['reports'].export_check_ins('2026-03-01', '2026-03-31', 'csv')

    old = (datetime.now() - timedelta(days=40)).timestamp()
    os.utime(result['filepath'], (old, old))

    cleanup = managers['reports'].delete_old_reports(days_old=30)
    assert cleanup['deleted_files'] == [result['filename']]
    assert not os.path.exists(result['filepath'])


def test_export_removes_expired_files(managers, student, qr_code):
    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])
    reports = managers['reports']
    first = reports.export_check_ins('2026-03-01', '2026-03-31', 'csv')

    expired = (datetime.now() - timedelta(days=reports.retention_days + 1)).timestamp()
    os.utime(first['filepath'], (expired, expired))

    second = reports.export_check_ins('2026-03-02', '2026-03-02', 'excel')

    assert not os.path.exists(first['filepath'])
    assert os.listdir(reports.output_dir) == [second['filename']]
