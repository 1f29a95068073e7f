import threading
from datetime import datetime

import pytest

from trailtag.modules.errors import DuplicateCheckInError, MalformedCodeError, UnknownCodeError


def count_check_ins(managers, student_id=None):
    if student_id is None:
        row = managers['db'].execute_query("SELECT COUNT(*) as count FROM check_ins", fetch_all=False)
    else:
        row = managers['db'].execute_query(
            "SELECT COUNT(*) as count FROM check_ins WHERE student_id = ?", (student_id,), fetch_all=False
        )
    return row['count']


def test_first_scan_succeeds(managers, student, program, qr_code):
    confirmation = managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])

    assert confirmation.program_id == program['id']
    assert confirmation.program_name == 'Forest Trail Walk'
    assert confirmation.location == 'North Gate'
    assert confirmation.check_in_time == '2026-03-02 09:00:00'
    assert confirmation.qr_issued_at == qr_code['issued_at']
    assert count_check_ins(managers, student['id']) == 1


def test_same_payload_within_window_is_duplicate(managers, clock, student, qr_code):
    checkins = managers['checkins']
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    clock.advance(minutes=4, seconds=59)
    with pytest.raises(DuplicateCheckInError):
        checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    assert count_check_ins(managers, student['id']) == 1


def test_scan_after_window_creates_second_record(managers, clock, student, qr_code):
    checkins = managers['checkins']
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    clock.advance(minutes=5)
    second = checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    assert second.check_in_time == '2026-03-02 09:05:00'
    assert count_check_ins(managers, student['id']) == 2


def test_window_measured_from_latest_check_in(managers, clock, student, qr_code):
    checkins = managers['checkins']
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])
    clock.advance(minutes=6)
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    clock.advance(minutes=3)
    with pytest.raises(DuplicateCheckInError):
        checkins.process_check_in(student['id'], qr_code['qr_code_data'])


def test_duplicate_guard_ignores_embedded_timestamp(managers, student, program, qr_code):
    checkins = managers['checkins']
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    rescanned = f"trailtag://checkin?program={program['id']}&location=North%20Gate&t=1"
    with pytest.raises(DuplicateCheckInError):
        checkins.process_check_in(student['id'], rescanned)


def test_two_students_same_minute_both_succeed(managers, clock, student, other_student, qr_code):
    checkins = managers['checkins']
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])
    clock.advance(seconds=20)
    checkins.process_check_in(other_student['id'], qr_code['qr_code_data'])

    assert count_check_ins(managers) == 2


def test_guard_is_per_program(managers, admin, student, qr_code):
    other_program = managers['programs'].create_program({'name': 'Pottery Class'}, admin['id'])['program']
    other_qr = managers['qrcodes'].create_qr_code(other_program['id'], 'Studio 1')['qrCode']

    managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])
    managers['checkins'].process_check_in(student['id'], other_qr['qr_code_data'])

    assert count_check_ins(managers, student['id']) == 2


@pytest.mark.parametrize('qr_data', [
    'trailtag://checkin?location=North%20Gate&t=1700000000',
    'trailtag://checkin?program=1&t=1700000000',
])
def test_missing_parameter_is_malformed_and_writes_nothing(managers, student, qr_code, qr_data):
    with pytest.raises(MalformedCodeError):
        managers['checkins'].process_check_in(student['id'], qr_data)

    assert count_check_ins(managers) == 0


def test_program_without_qr_code_is_unknown(managers, admin, student):
    bare_program = managers['programs'].create_program({'name': 'No Code Yet'}, admin['id'])['program']

    with pytest.raises(UnknownCodeError):
        managers['checkins'].process_check_in(
            student['id'], f"trailtag://checkin?program={bare_program['id']}&location=Hall&t=1"
        )
    assert count_check_ins(managers) == 0


def test_unknown_program_id(managers, student, qr_code):
    with pytest.raises(UnknownCodeError):
        managers['checkins'].process_check_in(student['id'], 'trailtag://checkin?program=9999&location=Hall&t=1')


def test_deactivated_program_is_unknown(managers, admin, student, program, qr_code):
    managers['programs'].delete_program(program['id'], admin['id'])

    with pytest.raises(UnknownCodeError):
        managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])


def test_deactivated_qr_code_is_unknown(managers, student, qr_code):
    managers['qrcodes'].delete_qr_code(qr_code['id'])

    with pytest.raises(UnknownCodeError):
        managers['checkins'].process_check_in(student['id'], qr_code['qr_code_data'])


def test_altered_location_is_unknown(managers, student, program, qr_code):
    with pytest.raises(UnknownCodeError):
        managers['checkins'].process_check_in(
            student['id'], f"trailtag://checkin?program={program['id']}&location=East%20Wing&t=1"
        )
    assert count_check_ins(managers) == 0


def test_relocated_code_supersedes_old_payload(managers, student, qr_code):
    old_payload = qr_code['qr_code_data']
    relocated = managers['qrcodes'].update_qr_code(qr_code['id'], {'location_name': 'South Gate'})['qrCode']

    with pytest.raises(UnknownCodeError):
        managers['checkins'].process_check_in(student['id'], old_payload)

    confirmation = managers['checkins'].process_check_in(student['id'], relocated['qr_code_data'])
    history = managers['checkins'].get_student_history(student['id'])

    assert confirmation.location == 'South Gate'
    assert [row['location'] for row in history] == ['South Gate']


def test_sub_second_rescan_inside_window_is_duplicate(managers, clock, student, qr_code):
    checkins = managers['checkins']
    clock.now = datetime(2026, 3, 2, 9, 0, 0, 900000)
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    clock.now = datetime(2026, 3, 2, 9, 5, 0, 500000)
    with pytest.raises(DuplicateCheckInError):
        checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    clock.now = datetime(2026, 3, 2, 9, 5, 0, 900000)
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])
    assert count_check_ins(managers, student['id']) == 2


def test_oversized_program_id_is_malformed(managers, student, qr_code):
    with pytest.raises(MalformedCodeError):
        managers['checkins'].process_check_in(
            student['id'], f"trailtag://checkin?program={'9' * 30}&location=North%20Gate&t=1"
        )


def test_concurrent_scans_record_once(managers, student, qr_code):
    checkins = managers['checkins']
    barrier = threading.Barrier(2)
    outcomes = []

    def scan():
        barrier.wait()
        try:
            checkins.process_check_in(student['id'], qr_code['qr_code_data'])
            outcomes.append('ok')
        except DuplicateCheckInError:
            outcomes.append('duplicate')
        finally:
            managers['db'].close_all_connections()

    threads = [threading.Thread(target=scan) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ['duplicate', 'ok']
    assert count_check_ins(managers, student['id']) == 1


def test_history_and_today(managers, clock, student, qr_code):
    checkins = managers['checkins']
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])
    clock.advance(days=1)
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    history = checkins.get_student_history(student['id'])
    assert [row['check_in_time'] for row in history] == ['2026-03-03 09:00:00', '2026-03-02 09:00:00']
    assert len(checkins.get_student_history(student['id'], limit=1)) == 1

    today = checkins.get_today_check_ins(student['id'])
    assert len(today) == 1
    assert today[0]['program_name'] == 'Forest Trail Walk'


def test_student_stats_and_summary(managers, clock, student, other_student, qr_code):
    checkins = managers['checkins']
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])
    checkins.process_check_in(other_student['id'], qr_code['qr_code_data'])
    clock.advance(hours=1)
    checkins.process_check_in(student['id'], qr_code['qr_code_data'])

    stats = checkins.get_student_stats(student['id'])
    assert stats['totalCheckIns'] == 2
    assert stats['uniquePrograms'] == 1
    assert stats['recentCheckIns'] == 2
    assert stats['mostVisitedPrograms'][0] == {'program_name': 'Forest Trail Walk', 'visit_count': 2}
    assert stats['lastCheckIn'] == '2026-03-02 10:00:00'

    summary = checkins.get_summary(days=7)
    assert summary['totalCheckIns'] == 3
    assert summary['uniqueStudents'] == 2
    assert summary['dailyBreakdown'] == [{'date': '2026-03-02', 'count': 3}]
