import json

def test_url_verification_echoes_challenge(test_client, runner):
    response = test_client.post('/slack', json={'type': 'url_verification', 'challenge': 'abc123'})

    assert response.status_code == 200
    assert response.get_data(as_text=True) == 'abc123'
    assert response.headers['Content-Type'].startswith('text/plain')
    assert runner.spawned == []

def test_url_verification_without_challenge(test_client):
    response = test_client.post('/slack', json={'type': 'url_verification'})

    assert response.status_code == 400
    assert response.get_data(as_text=True) == 'missing_challenge'

def test_events_endpoint_needs_no_signature(test_client):
    # No signature headers at all
    response = test_client.post(
        '/slack',
        data=json.dumps({'type': 'url_verification', 'challenge': 'xyz'}),
        content_type='application/json'
    )
    assert response.get_data(as_text=True) == 'xyz'

def test_unknown_body_is_acknowledged(test_client, runner):
    response = test_client.post('/slack', json={'type': 'something_else'})
    assert response.status_code == 200
    assert response.get_data(as_text=True) == 'OK'
    assert runner.spawned == []

def test_empty_mention_posts_help(test_client, runner, slack_client):
    response = test_client.post('/slack', json={
        'type': 'event_callback',
        'event': {'type': 'app_mention', 'user': 'U1', 'channel': 'C1', 'text': '<@U0BOT>'}
    })
    assert response.get_data(as_text=True) == 'OK'
    assert len(runner.spawned) == 1

    runner.run_all()
    channel, text, blocks = slack_client.post_message.await_args.args
    assert channel == 'C1'
    assert "Here's how to chat with me" in blocks[0]['text']['text']

def test_mention_without_persona_queues_message(test_client, runner, slack_client, conversations):
    test_client.post('/slack', json={
        'type': 'event_callback',
        'event': {'type': 'app_mention', 'user': 'U1', 'channel': 'C1', 'text': '<@U0BOT> what is design?'}
    })
    runner.run_all()

    blocks = slack_client.post_message.await_args.args[2]
    assert 'I\'d love to help with: "what is design?"' in blocks[0]['text']['text']
    assert blocks[1]['elements'][0]['action_id'] == 'select_persona'
    assert conversations.get('U1').history == [{'role': 'user', 'content': 'what is design?'}]

def test_direct_message_with_persona_gets_reply(test_client, runner, slack_client, conversations):
    conversations.get('U1').selected_persona = 'steve-jobs'

    test_client.post('/slack', json={
        'type': 'event_callback',
        'event': {'type': 'message', 'channel_type': 'im', 'user': 'U1', 'channel': 'D1', 'text': 'hello'}
    })
    runner.run_all()

    blocks = slack_client.post_message.await_args.args[2]
    assert blocks[0]['text']['text'].startswith('*🍎 Steve Jobs:*')
    action_ids = [element['action_id'] for element in blocks[1]['elements']]
    assert action_ids == ['generate_voice', 'continue_chat', 'switch_persona']
    assert len(conversations.get('U1').history) == 2

def test_bot_and_channel_messages_are_ignored(test_client, runner, slack_client):
    test_client.post('/slack', json={
        'type': 'event_callback',
        'event': {'type': 'message', 'channel_type': 'im', 'bot_id': 'B1', 'channel': 'D1', 'text': 'loop'}
    })
    test_client.post('/slack', json={
        'type': 'event_callback',
        'event': {'type': 'message', 'channel_type': 'channel', 'user': 'U1', 'channel': 'C1', 'text': 'chatter'}
    })
    runner.run_all()

    slack_client.post_message.assert_not_called()
