def create_quiz(client, payload):
    res = client.post('/api/quizzes', json=payload)
    assert res.status_code == 201
    return res.get_json()


def join(client, quiz_id, name, **extra):
    return client.post(f'/api/quizzes/{quiz_id}/players', json={'name': name, **extra})


def test_health_and_avatars(client):
    res = client.get('/api/health')
    assert res.status_code == 200
    assert res.get_json() == {'status': 'ok'}

    avatars = client.get('/api/avatars').get_json()
    assert len(avatars) == 12
    assert {'id', 'name', 'icon', 'color', 'description'} <= set(avatars[0])


def test_create_and_fetch_quiz(client, quiz_payload):
    quiz = create_quiz(client, quiz_payload)
    assert quiz['status'] == 'waiting'
    assert quiz['time_per_question'] == 20
    assert quiz['questions'][1]['correct_answer'] == 2

    res = client.get(f"/api/quizzes/{quiz['id']}")
    assert res.status_code == 200
    fetched = res.get_json()
    assert fetched['title'] == 'Bible Basics'
    assert fetched['players'] == []


def test_create_quiz_rejects_invalid_input(client, quiz_payload):
    quiz_payload['title'] = ''
    res = client.post('/api/quizzes', json=quiz_payload)
    assert res.status_code == 400
    assert 'error' in res.get_json()

    quiz_payload['title'] = 'Ok'
    quiz_payload['questions'][0]['options'] = ['only one']
    assert client.post('/api/quizzes', json=quiz_payload).status_code == 400


def test_unknown_quiz_is_404(client):
    assert client.get('/api/quizzes/missing').status_code == 404
    assert client.get('/api/quizzes/missing/join-link').status_code == 404
    assert join(client, 'missing', 'Alice').status_code == 404


def test_join_link(client, quiz_payload):
    quiz = create_quiz(client, quiz_payload)
    data = client.get(f"/api/quizzes/{quiz['id']}/join-link").get_json()
    assert data == {'quiz_id': quiz['id'], 'url': f"http://quiz.test/#/join/{quiz['id']}"}


def test_join_validation_rules(client, quiz_payload):
    quiz_payload['max_players'] = 2
    quiz = create_quiz(client, quiz_payload)
    qid = quiz['id']

    res = join(client, qid, 'Alice', avatar_id='esther')
    assert res.status_code == 201
    alice = res.get_json()
    assert alice['lives'] == 3
    assert alice['score'] == 0
    assert alice['avatar']['id'] == 'esther'

    assert join(client, qid, 'alice').status_code == 400
    assert join(client, qid, '').status_code == 400
    assert join(client, qid, 'Bob').status_code == 201
    res = join(client, qid, 'Cat')
    assert res.status_code == 400
    assert 'maximum' in res.get_json()['error']


def test_join_rejected_once_playing(client, quiz_payload):
    qid = create_quiz(client, quiz_payload)['id']
    join(client, qid, 'Alice')
    assert client.post(f'/api/quizzes/{qid}/start').status_code == 200
    res = join(client, qid, 'Bob')
    assert res.status_code == 400
    assert 'in progress' in res.get_json()['error']


def test_player_updates_are_monotonic(client, quiz_payload):
    qid = create_quiz(client, quiz_payload)['id']
    pid = join(client, qid, 'Alice').get_json()['id']

    res = client.patch(f'/api/players/{pid}', json={'score': 103, 'lives': 2})
    assert res.status_code == 200
    assert res.get_json()['score'] == 103
    assert res.get_json()['lives'] == 2

    assert client.patch(f'/api/players/{pid}', json={'score': 50}).status_code == 400
    assert client.patch(f'/api/players/{pid}', json={'lives': 3}).status_code == 400
    assert client.patch(f'/api/players/{pid}', json={'lives': -1}).status_code == 400
    assert client.patch(f'/api/players/{pid}', json={}).status_code == 400
    assert client.patch('/api/players/missing', json={'score': 1}).status_code == 404

    player = client.get(f'/api/quizzes/{qid}').get_json()['players'][0]
    assert (player['score'], player['lives']) == (103, 2)


def test_rankings_order_by_score(client, quiz_payload):
    qid = create_quiz(client, quiz_payload)['id']
    alice = join(client, qid, 'Alice').get_json()['id']
    bob = join(client, qid, 'Bob').get_json()['id']
    client.patch(f'/api/players/{bob}', json={'score': 204})
    client.patch(f'/api/players/{alice}', json={'score': 101})

    ranking = client.get(f'/api/quizzes/{qid}/rankings').get_json()
    assert [p['name'] for p in ranking] == ['Bob', 'Alice']


def test_status_transitions(client, quiz_payload):
    qid = create_quiz(client, quiz_payload)['id']
    assert client.post(f'/api/quizzes/{qid}/finish').status_code == 400

    res = client.post(f'/api/quizzes/{qid}/start')
    assert res.get_json()['status'] == 'playing'
    assert client.post(f'/api/quizzes/{qid}/start').status_code == 200

    res = client.post(f'/api/quizzes/{qid}/finish')
    assert res.get_json()['status'] == 'finished'
    assert client.post(f'/api/quizzes/{qid}/finish').status_code == 200
    assert client.post(f'/api/quizzes/{qid}/start').status_code == 400
    assert client.post('/api/quizzes/missing/start').status_code == 404


def test_answers_and_results(client, quiz_payload):
    qid = create_quiz(client, quiz_payload)['id']
    alice = join(client, qid, 'Alice').get_json()['id']
    bob = join(client, qid, 'Bob').get_json()['id']

    def answer(pid, question, correct, spent, index=0, second=0):
        return client.post(f'/api/quizzes/{qid}/answers', json={
            'player_id': pid, 'question_index': question, 'answer_index': index,
            'is_correct': correct, 'time_spent': spent,
            'answered_at': f'2026-03-01T18:00:{second:02d}+00:00',
        })

    assert answer(alice, 0, True, 10).status_code == 201
    assert answer(alice, 1, True, 10).status_code == 201
    assert answer(bob, 0, True, 2).status_code == 201
    assert answer(bob, 1, True, 4, second=10).status_code == 201
    res = client.post(f'/api/quizzes/{qid}/answers', json={
        'player_id': bob, 'question_index': 1, 'answer_index': None, 'is_correct': False, 'time_spent': 20,
        'answered_at': '2026-03-01T18:00:30+00:00',
    })
    assert res.status_code == 201
    assert res.get_json()['answer_index'] is None
    client.patch(f'/api/players/{alice}', json={'score': 204})
    client.patch(f'/api/players/{bob}', json={'score': 204})

    data = client.get(f'/api/quizzes/{qid}/results').get_json()
    names = [r['name'] for r in data['results']]
    assert names == ['Bob', 'Alice']
    bob_result = data['results'][0]
    assert bob_result['correct_answers'] == 2
    assert bob_result['average_time'] == 3.0
    assert bob_result['accuracy'] == 100.0


def test_answer_validation(client, quiz_payload):
    qid = create_quiz(client, quiz_payload)['id']
    res = client.post(f'/api/quizzes/{qid}/answers', json={'question_index': 0})
    assert res.status_code == 400
    res = client.post(f'/api/quizzes/{qid}/answers', json={'player_id': 'ghost', 'question_index': 0})
    assert res.status_code == 404


def test_answer_time_must_fit_the_question_budget(client, quiz_payload):
    qid = create_quiz(client, quiz_payload)['id']
    pid = join(client, qid, 'Alice').get_json()['id']

    def answer(spent):
        return client.post(f'/api/quizzes/{qid}/answers', json={
            'player_id': pid, 'question_index': 0, 'answer_index': 1,
            'is_correct': True, 'time_spent': spent,
        })

    res = answer(-1)
    assert res.status_code == 400
    assert 'time_spent' in res.get_json()['error']
    assert answer(21).status_code == 400
    assert answer(20).status_code == 201
    assert answer(0).status_code == 201
