import uuid


def _swap(client, headers, course, current, desired, semester, **extra):
    body = {'course_code': course, 'course_name': 'Course', 'current_section': current,
            'desired_section': desired, 'semester': semester}
    body.update(extra)
    r = client.post('/swaps', json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _unique_course():
    return f"CS {uuid.uuid4().hex[:6].upper()}"


def test_reciprocal_requests_flagged_for_both_users(client, register_user):
    alice = register_user(first_name='Alice')
    bob = register_user(first_name='Bob')
    course = _unique_course()
    a = _swap(client, alice['headers'], course, 'A', 'B', 'Fall 2024')
    b = _swap(client, bob['headers'], course, 'B', 'A', 'Fall 2024')

    pool = client.get('/swaps', params={'course_code': course}, headers=alice['headers']).json()
    flags = {r['id']: r['is_match'] for r in pool}
    assert flags == {a['id']: False, b['id']: True}
    bob_row = [r for r in pool if r['id'] == b['id']][0]
    assert bob_row['user_name'].startswith('Bob')
    assert bob_row['user_email'] == bob['email']

    pool = client.get('/swaps', params={'course_code': course}, headers=bob['headers']).json()
    assert {r['id']: r['is_match'] for r in pool} == {a['id']: True, b['id']: False}


def test_lowercase_section_breaks_match(client, register_user):
    alice = register_user()
    bob = register_user()
    course = _unique_course()
    _swap(client, alice['headers'], course, 'A', 'B', 'Fall 2024')
    b = _swap(client, bob['headers'], course, 'b', 'A', 'Fall 2024')
    pool = client.get('/swaps', params={'course_code': course}, headers=alice['headers']).json()
    assert [r['is_match'] for r in pool if r['id'] == b['id']] == [False]


def test_filters(client, register_user):
    alice = register_user()
    course = _unique_course()
    semester = f"Spring {uuid.uuid4().hex[:4]}"
    s1 = _swap(client, alice['headers'], course, 'L1', 'L2', semester, instructor_current='Dr. Rahim')
    _swap(client, alice['headers'], course, 'L3', 'L4', 'Other term', instructor_desired='Ms. Noor')

    by_course = client.get('/swaps', params={'course_code': course.lower()}, headers=alice['headers']).json()
    assert len(by_course) == 2
    by_semester = client.get('/swaps', params={'semester': semester}, headers=alice['headers']).json()
    assert [r['id'] for r in by_semester] == [s1['id']]
    by_instructor = client.get('/swaps', params={'course_code': course, 'instructor': 'rahim'},
                               headers=alice['headers']).json()
    assert [r['id'] for r in by_instructor] == [s1['id']]
    by_desired = client.get('/swaps', params={'course_code': course, 'instructor': 'NOOR'},
                            headers=alice['headers']).json()
    assert len(by_desired) == 1


def test_status_changes_and_ownership(client, register_user):
    alice = register_user()
    bob = register_user()
    course = _unique_course()
    a = _swap(client, alice['headers'], course, 'A', 'B', 'Fall 2024')

    r = client.patch(f"/swaps/{a['id']}/status", json={'status': 'completed'}, headers=bob['headers'])
    assert r.status_code == 404
    assert client.delete(f"/swaps/{a['id']}", headers=bob['headers']).status_code == 404

    r = client.patch(f"/swaps/{a['id']}/status", json={'status': 'completed'}, headers=alice['headers'])
    assert r.status_code == 200
    assert r.json()['status'] == 'completed'
    assert client.get('/swaps', params={'course_code': course}, headers=bob['headers']).json() == []
    mine = client.get('/swaps/mine', headers=alice['headers']).json()
    assert [s['status'] for s in mine if s['id'] == a['id']] == ['completed']

    bad = client.patch(f"/swaps/{a['id']}/status", json={'status': 'archived'}, headers=alice['headers'])
    assert bad.status_code == 422
    assert client.delete(f"/swaps/{a['id']}", headers=alice['headers']).status_code == 204
    assert all(s['id'] != a['id'] for s in client.get('/swaps/mine', headers=alice['headers']).json())


def test_find_matches_lists_every_counterpart(client, register_user):
    alice = register_user()
    bob = register_user()
    carol = register_user()
    course = _unique_course()
    a = _swap(client, alice['headers'], course, 'A', 'B', 'Fall 2024')
    b = _swap(client, bob['headers'], course, 'B', 'A', 'Fall 2024')
    c = _swap(client, carol['headers'], course, 'B', 'A', 'Fall 2024')
    _swap(client, carol['headers'], course, 'B', 'A', 'Spring 2025')

    matches = client.get(f"/swaps/{a['id']}/matches", headers=alice['headers']).json()
    assert sorted(m['id'] for m in matches) == sorted([b['id'], c['id']])
    assert client.get(f"/swaps/{a['id']}/matches", headers=bob['headers']).status_code == 404


def test_same_section_request_rejected(client, register_user):
    alice = register_user()
    r = client.post('/swaps', json={'course_code': 'CS 1', 'course_name': 'x', 'current_section': 'A',
                                    'desired_section': 'A', 'semester': 'Fall 2024'}, headers=alice['headers'])
    assert r.status_code == 400
