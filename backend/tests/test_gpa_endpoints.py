def _semester(client, headers, name, year, season, is_current=False):
    r = client.post('/gpa/semesters', json={'name': name, 'year': year, 'season': season,
                                            'is_current': is_current}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _course(client, headers, semester_id, code, hours, grade):
    r = client.post('/gpa/courses', json={'semester_id': semester_id, 'course_code': code,
                                          'course_name': code, 'credit_hours': hours, 'grade': grade},
                    headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_summary_is_credit_weighted_and_ordered(client, register_user):
    h = register_user()['headers']
    spring = _semester(client, h, 'Spring 2024', 2024, 'Spring')
    fall = _semester(client, h, 'Fall 2024', 2024, 'Fall')
    _course(client, h, spring['id'], 'CS 101', 3, 'A')
    for i in range(5):
        _course(client, h, fall['id'], f'HUM {i}', 3, 'C')
    _course(client, h, fall['id'], 'CS 300', 3, 'IP')

    summary = client.get('/gpa/summary', headers=h).json()
    assert summary['cgpa'] == 2.33
    assert summary['earned_credits'] == 18
    assert summary['total_credits'] == 21
    assert [s['name'] for s in summary['semesters']] == ['Fall 2024', 'Spring 2024']
    fall_view = summary['semesters'][0]
    assert fall_view['gpa'] == 2.0
    assert fall_view['earned_credits'] == 15
    assert fall_view['total_credits'] == 18
    assert 'total_points' not in fall_view
    ip = [c for c in fall_view['courses'] if c['grade'] == 'IP'][0]
    assert ip['grade_points'] is None


def test_semester_detail_and_course_update(client, register_user):
    h = register_user()['headers']
    sem = _semester(client, h, 'Fall 2023', 2023, 'Fall')
    c = _course(client, h, sem['id'], 'MATH 101', 4, 'IP')
    detail = client.get(f"/gpa/semesters/{sem['id']}", headers=h).json()
    assert detail['gpa'] == 0.0
    assert detail['total_credits'] == 4

    r = client.patch(f"/gpa/courses/{c['id']}", json={'grade': 'B+'}, headers=h)
    assert r.status_code == 200
    assert r.json()['grade'] == 'B+'
    detail = client.get(f"/gpa/semesters/{sem['id']}", headers=h).json()
    assert detail['gpa'] == 3.33
    assert detail['earned_credits'] == 4

    assert client.delete(f"/gpa/courses/{c['id']}", headers=h).status_code == 204
    assert client.get(f"/gpa/semesters/{sem['id']}", headers=h).json()['courses'] == []


def test_only_one_current_semester(client, register_user):
    h = register_user()['headers']
    first = _semester(client, h, 'Fall 2023', 2023, 'Fall', is_current=True)
    second = _semester(client, h, 'Spring 2024', 2024, 'Spring', is_current=True)
    current = [s['id'] for s in client.get('/gpa/semesters', headers=h).json() if s['is_current']]
    assert current == [second['id']]

    r = client.post(f"/gpa/semesters/{first['id']}/current", headers=h)
    assert r.status_code == 200
    assert r.json()['is_current'] is True
    current = [s['id'] for s in client.get('/gpa/semesters', headers=h).json() if s['is_current']]
    assert current == [first['id']]


def test_set_current_is_scoped_to_owner(client, register_user):
    alice = register_user()['headers']
    bob = register_user()['headers']
    mine = _semester(client, alice, 'Fall 2024', 2024, 'Fall', is_current=True)
    theirs = _semester(client, bob, 'Fall 2024', 2024, 'Fall')
    assert client.post(f"/gpa/semesters/{theirs['id']}/current", headers=alice).status_code == 404
    assert client.post(f"/gpa/semesters/{theirs['id']}/current", headers=bob).status_code == 200
    alice_sems = client.get('/gpa/semesters', headers=alice).json()
    assert [s['is_current'] for s in alice_sems if s['id'] == mine['id']] == [True]


def test_delete_semester_cascades_to_courses(client, register_user):
    h = register_user()['headers']
    sem = _semester(client, h, 'Summer 2024', 2024, 'Summer')
    c = _course(client, h, sem['id'], 'PHY 101', 3, 'A-')
    assert client.delete(f"/gpa/semesters/{sem['id']}", headers=h).status_code == 204
    assert client.get(f"/gpa/semesters/{sem['id']}", headers=h).status_code == 404
    assert client.patch(f"/gpa/courses/{c['id']}", json={'grade': 'A'}, headers=h).status_code == 404
    assert client.get('/gpa/summary', headers=h).json() == {
        'cgpa': 0.0, 'total_credits': 0.0, 'earned_credits': 0.0, 'semesters': [],
    }


def test_cannot_touch_another_users_semester(client, register_user):
    alice = register_user()['headers']
    bob = register_user()['headers']
    sem = _semester(client, alice, 'Fall 2024', 2024, 'Fall')
    r = client.post('/gpa/courses', json={'semester_id': sem['id'], 'course_code': 'X', 'course_name': 'X',
                                          'credit_hours': 3, 'grade': 'A'}, headers=bob)
    assert r.status_code == 404
    assert r.json()['detail'] == 'Semester not found'
    assert client.delete(f"/gpa/semesters/{sem['id']}", headers=bob).status_code == 404


def test_invalid_grade_and_credits_rejected(client, register_user):
    h = register_user()['headers']
    sem = _semester(client, h, 'Fall 2024', 2024, 'Fall')
    for hours, grade in ((3, 'D'), (0, 'A'), (-1, 'B')):
        r = client.post('/gpa/courses', json={'semester_id': sem['id'], 'course_code': 'X', 'course_name': 'X',
                                              'credit_hours': hours, 'grade': grade}, headers=h)
        assert r.status_code == 422
    r = client.post('/gpa/semesters', json={'name': 'W', 'year': 2024, 'season': 'Winter'}, headers=h)
    assert r.status_code == 422
