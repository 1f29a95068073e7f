"""
TrailTag - Test Configuration and Fixtures
"""
from datetime import datetime, timedelta

import pytest

from trailtag import create_app

DEFAULT_PASSWORD = 'secret123'


class FakeClock:
    """Server clock that only moves when a test advances it"""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def auth_headers(token):
    return {'Authorization': f'Bearer {token}'}


def make_user(managers, username, user_type, **extra):
    user_data = {
        'username': username,
        'password': DEFAULT_PASSWORD,
        'full_name': username.replace('_', ' ').title(),
        'email': f'{username}@example.com',
        'user_type': user_type
    }
    user_data.update(extra)
    result = managers['auth'].register_user(user_data)
    assert result['success'], result
    return result['user']


def login(managers, username, password=DEFAULT_PASSWORD):
    result = managers['auth'].authenticate_user(username, password)
    assert result['success'], result
    return result['token']


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def app(tmp_path, clock):
    """Application backed by a fresh SQLite file per test"""
    app = create_app('testing', overrides={
        'DATABASE_PATH': str(tmp_path / 'trailtag.db'),
        'EXPORTS_FOLDER': str(tmp_path / 'exports')
    }, clock=clock)
    yield app
    app.extensions['trailtag']['db'].close_all_connections()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def managers(app):
    return app.extensions['trailtag']


@pytest.fixture
def admin(managers):
    """Default admin account created at start-up"""
    return managers['db'].execute_query(
        "SELECT * FROM users WHERE username = 'admin'", fetch_all=False
    )


@pytest.fixture
def student(managers):
    return make_user(managers, 'kim_minji', 'student', phone='010-1234-5678', language='en')


@pytest.fixture
def other_student(managers):
    return make_user(managers, 'lee_jun', 'student', phone='010-9876-5432')


@pytest.fixture
def parent(managers):
    return make_user(managers, 'kim_parent', 'parent', phone='010-5555-0000')


@pytest.fixture
def admin_headers(managers, admin):
    return auth_headers(login(managers, 'admin', 'admin123'))


@pytest.fixture
def student_headers(managers, student):
    return auth_headers(login(managers, student['username']))


@pytest.fixture
def other_student_headers(managers, other_student):
    return auth_headers(login(managers, other_student['username']))


@pytest.fixture
def parent_headers(managers, parent):
    return auth_headers(login(managers, parent['username']))


@pytest.fixture
def program(managers, admin):
    result = managers['programs'].create_program(
        {'name': 'Forest Trail Walk', 'description': 'Guided nature walk', 'location': 'North Gate'},
        admin['id']
    )
    return result['program']


@pytest.fixture
def qr_code(managers, program):
    return managers['qrcodes'].create_qr_code(program['id'], 'North Gate')['qrCode']
