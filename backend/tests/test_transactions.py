import uuid

import pytest
from sqlmodel import Session

from campus import repositories, services
from campus.database import engine


def _semester(client, headers, name, is_current=False):
    r = client.post('/gpa/semesters', json={'name': name, 'year': 2024, 'season': 'Fall',
                                            'is_current': is_current}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_set_current_rolls_back_when_a_step_fails(client, register_user, monkeypatch):
    user = register_user()
    h = user['headers']
    first = _semester(client, h, 'First', is_current=True)
    second = _semester(client, h, 'Second')

    original = repositories.SemesterRepository.stage_clear_current

    def clear_then_fail(self, user_id):
        original(self, user_id)
        raise RuntimeError('disk full')

    monkeypatch.setattr(repositories.SemesterRepository, 'stage_clear_current', clear_then_fail)
    with Session(engine) as session:
        with pytest.raises(RuntimeError):
            services.GpaService(session).set_current(second['id'], user['id'])
    monkeypatch.undo()

    current = [s['id'] for s in client.get('/gpa/semesters', headers=h).json() if s['is_current']]
    assert current == [first['id']]


def test_register_leaves_no_user_when_token_signing_fails(monkeypatch):
    email = f"u{uuid.uuid4().hex[:10]}@st.habib.edu.pk"

    def broken_token(self, user):
        raise RuntimeError('signing key unavailable')

    monkeypatch.setattr(services.AuthService, 'issue_token', broken_token)
    with Session(engine) as session:
        with pytest.raises(RuntimeError):
            services.AuthService(session).register('Nadia', 'Ali', email, 'secret123')

    with Session(engine) as session:
        assert repositories.UserRepository(session).get_by_email(email) is None
