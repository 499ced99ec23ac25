import uuid


def _channel(client, headers, **extra):
    body = {'name': f"Chan {uuid.uuid4().hex[:8]}", 'description': 'General chat'}
    body.update(extra)
    r = client.post('/channels', json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_creator_is_member_and_counts(client, register_user):
    owner = register_user(first_name='Owner')
    ch = _channel(client, owner['headers'])
    assert ch['member_count'] == 1
    assert ch['post_count'] == 0
    assert ch['creator_first_name'] == 'Owner'
    mine = client.get('/channels', headers=owner['headers']).json()
    assert ch['id'] in [c['id'] for c in mine]
    assert client.get(f"/channels/{ch['id']}", headers=owner['headers']).status_code == 200


def test_join_post_like_comment_flow(client, register_user):
    owner = register_user()
    member = register_user(first_name='Mona')
    ch = _channel(client, owner['headers'])

    assert client.get(f"/channels/{ch['id']}", headers=member['headers']).status_code == 404
    discover = client.get('/channels/discover', headers=member['headers']).json()
    assert ch['id'] in [c['id'] for c in discover]
    assert client.post(f"/channels/{ch['id']}/join", headers=member['headers']).json()['joined'] is True
    assert client.post(f"/channels/{ch['id']}/join", headers=member['headers']).json()['joined'] is False

    post = client.post('/posts', json={'channel_id': ch['id'], 'title': 'Hello', 'content': 'First post'},
                       headers=owner['headers']).json()
    assert post['channel_name'] == ch['name']
    assert post['like_count'] == 0

    like = client.post(f"/posts/{post['id']}/like", headers=member['headers'])
    assert like.json() == {'liked': True}
    c = client.post(f"/posts/{post['id']}/comments", json={'content': 'Welcome!'}, headers=member['headers'])
    assert c.status_code == 201
    assert c.json()['first_name'] == 'Mona'

    posts = client.get(f"/channels/{ch['id']}/posts", headers=member['headers']).json()
    assert posts[0]['id'] == post['id']
    assert posts[0]['like_count'] == 1
    assert posts[0]['comment_count'] == 1
    assert posts[0]['user_has_liked'] is True
    feed = client.get('/feed', headers=owner['headers']).json()
    assert feed[0]['user_has_liked'] is False

    notes = client.get('/notifications', headers=owner['headers']).json()
    assert {n['type'] for n in notes['notifications']} == {'like', 'comment'}
    assert notes['unread_count'] == 2
    assert notes['notifications'][0]['actor_name'].startswith('Mona')

    assert client.post(f"/posts/{post['id']}/like", headers=member['headers']).json() == {'liked': False}


def test_own_actions_do_not_notify(client, register_user):
    owner = register_user()
    ch = _channel(client, owner['headers'])
    post = client.post('/posts', json={'channel_id': ch['id'], 'title': 'T', 'content': 'C'},
                       headers=owner['headers']).json()
    client.post(f"/posts/{post['id']}/like", headers=owner['headers'])
    client.post(f"/posts/{post['id']}/comments", json={'content': 'me'}, headers=owner['headers'])
    assert client.get('/notifications', headers=owner['headers']).json()['unread_count'] == 0


def test_non_member_cannot_post_or_read(client, register_user):
    owner = register_user()
    outsider = register_user()
    ch = _channel(client, owner['headers'])
    r = client.post('/posts', json={'channel_id': ch['id'], 'title': 'x', 'content': 'y'},
                    headers=outsider['headers'])
    assert r.status_code == 403
    assert client.get(f"/channels/{ch['id']}/posts", headers=outsider['headers']).status_code == 403


def test_role_restricted_channel(client, register_user):
    faculty = register_user(domain='sse.habib.edu.pk')
    student = register_user()
    ch = _channel(client, faculty['headers'], allowed_roles=['faculty'])
    assert client.post(f"/channels/{ch['id']}/join", headers=student['headers']).status_code == 403
    discover = client.get('/channels/discover', headers=student['headers']).json()
    assert ch['id'] not in [c['id'] for c in discover]


def test_leave_channel(client, register_user):
    owner = register_user()
    member = register_user()
    ch = _channel(client, owner['headers'])
    client.post(f"/channels/{ch['id']}/join", headers=member['headers'])
    assert client.post(f"/channels/{ch['id']}/leave", headers=member['headers']).status_code == 200
    assert client.post(f"/channels/{ch['id']}/leave", headers=member['headers']).status_code == 404


def test_soft_delete_post_and_comment(client, register_user):
    owner = register_user()
    member = register_user()
    ch = _channel(client, owner['headers'])
    client.post(f"/channels/{ch['id']}/join", headers=member['headers'])
    post = client.post('/posts', json={'channel_id': ch['id'], 'title': 'T', 'content': 'C'},
                       headers=owner['headers']).json()
    comment = client.post(f"/posts/{post['id']}/comments", json={'content': 'hi'},
                          headers=member['headers']).json()
    assert client.delete(f"/comments/{comment['id']}", headers=owner['headers']).status_code == 404
    assert client.delete(f"/comments/{comment['id']}", headers=member['headers']).status_code == 204
    assert client.get(f"/posts/{post['id']}/comments", headers=owner['headers']).json() == []

    assert client.delete(f"/posts/{post['id']}", headers=member['headers']).status_code == 404
    assert client.delete(f"/posts/{post['id']}", headers=owner['headers']).status_code == 204
    assert client.get(f"/channels/{ch['id']}/posts", headers=owner['headers']).json() == []
    assert client.get(f"/channels/{ch['id']}", headers=owner['headers']).json()['post_count'] == 0


def test_channel_validation(client, register_user):
    h = register_user()['headers']
    assert client.post('/channels', json={'name': 'bad_name!'}, headers=h).status_code == 422
    assert client.post('/channels', json={'name': ''}, headers=h).status_code == 422
    r = client.post('/posts', json={'channel_id': 1, 'title': '', 'content': 'x'}, headers=h)
    assert r.status_code == 422


def test_whitespace_only_text_is_rejected(client, register_user):
    owner = register_user()
    h = owner['headers']
    assert client.post('/channels', json={'name': '   '}, headers=h).status_code == 422
    ch = _channel(client, h)
    r = client.post('/posts', json={'channel_id': ch['id'], 'title': '   ', 'content': 'x'}, headers=h)
    assert r.status_code == 422
    r = client.post('/posts', json={'channel_id': ch['id'], 'title': '  Padded  ', 'content': 'x'}, headers=h)
    assert r.status_code == 201
    assert r.json()['title'] == 'Padded'
    post_id = r.json()['id']
    assert client.post(f"/posts/{post_id}/comments", json={'content': ' \n '}, headers=h).status_code == 422
