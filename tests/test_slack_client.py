import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from slack_sdk.errors import SlackApiError

from twin_lib.slack_client import SlackClient

def failing_web_client():
    error = SlackApiError('channel_not_found', {'ok': False, 'error': 'channel_not_found'})
    client = MagicMock()
    client.chat_postMessage = AsyncMock(side_effect=error)
    client.chat_postEphemeral = AsyncMock(side_effect=error)
    client.files_upload_v2 = AsyncMock(side_effect=error)
    return client

@pytest.mark.asyncio
async def test_slack_api_errors_are_swallowed():
    web_client = failing_web_client()
    slack = SlackClient('xoxb-test', client=web_client)

    await slack.post_message('C1', 'hello')
    await slack.post_ephemeral('C1', 'U1', 'just you')
    await slack.upload_file('C1', 'voice.mp3', b'mp3')

    web_client.chat_postMessage.assert_awaited_once()
    web_client.chat_postEphemeral.assert_awaited_once()
    web_client.files_upload_v2.assert_awaited_once()

@pytest.mark.asyncio
async def test_unexpected_errors_are_swallowed():
    web_client = MagicMock()
    web_client.chat_postMessage = AsyncMock(side_effect=ConnectionError('network down'))

    await SlackClient('xoxb-test', client=web_client).post_message('C1', 'hello')

@pytest.mark.asyncio
async def test_calls_pass_through():
    web_client = MagicMock()
    web_client.chat_postMessage = AsyncMock()
    web_client.chat_postEphemeral = AsyncMock()
    web_client.files_upload_v2 = AsyncMock()
    slack = SlackClient('xoxb-test', client=web_client)
    blocks = [{'type': 'divider'}]

    await slack.post_message('C1', 'hello', blocks)
    await slack.post_ephemeral('C1', 'U1', 'just you')
    await slack.upload_file('C1', 'voice.mp3', b'mp3')

    web_client.chat_postMessage.assert_awaited_once_with(channel='C1', text='hello', blocks=blocks)
    web_client.chat_postEphemeral.assert_awaited_once_with(channel='C1', user='U1', text='just you')
    web_client.files_upload_v2.assert_awaited_once_with(
        channel='C1', file=b'mp3', filename='voice.mp3', title='voice.mp3'
    )

@pytest.mark.asyncio
async def test_no_token_means_no_calls():
    with patch('twin_lib.slack_client.AsyncWebClient') as web_client_class:
        slack = SlackClient('')

        assert slack.enabled is False
        await slack.post_message('C1', 'hello')
        await slack.post_ephemeral('C1', 'U1', 'just you')
        await slack.upload_file('C1', 'voice.mp3', b'mp3')

    web_client_class.assert_not_called()
