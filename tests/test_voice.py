import pytest
from unittest.mock import patch

from conftest import FakeResponse, _no_sleep
from twin_api.services.voice import (
    FALLBACK_VOICES,
    JOBS_VOICE_ID,
    LEONARDO_VOICE_ID,
    MAX_CHARS,
    RETRY_CHARS,
    AudioResult,
    VoiceFallback,
    VoiceService,
    resolve_voice_id_for_persona,
    select_voice_id,
    truncate_text,
)
from twin_lib.rate_limiter import RateLimiter

FEI_FEI_VOICE_ID = 'JL6vl3xyRi3Ly7WoywNO'

def make_service(api_key='test-key'):
    return VoiceService(api_key=api_key, rate_limiter=RateLimiter(delay=0, sleep=_no_sleep))

def test_exact_name_is_case_insensitive():
    assert resolve_voice_id_for_persona('STEVE JOBS') == JOBS_VOICE_ID
    assert resolve_voice_id_for_persona('  albert einstein ') == 'e2odxVHlmLJ5GY1yuWNl'

def test_misspelled_alias_resolves():
    assert resolve_voice_id_for_persona('fi fi lee') == FEI_FEI_VOICE_ID
    assert resolve_voice_id_for_persona('Fei Fei Li') == FEI_FEI_VOICE_ID

def test_substring_match_either_direction():
    assert resolve_voice_id_for_persona('Dr. Albert Einstein PhD') == 'e2odxVHlmLJ5GY1yuWNl'
    assert resolve_voice_id_for_persona('disney') == '1KmhFCCzy2hRrIDMEXFZ'

def test_unresolvable_names():
    assert resolve_voice_id_for_persona(None) is None
    assert resolve_voice_id_for_persona('') is None
    assert resolve_voice_id_for_persona('   ') is None
    assert resolve_voice_id_for_persona('Ada Lovelace') is None

def test_select_voice_id_defaults():
    assert select_voice_id(voice_id='explicit') == 'explicit'
    assert select_voice_id('Unknown Leonardo impersonator') == LEONARDO_VOICE_ID
    assert select_voice_id('Ada Lovelace') == JOBS_VOICE_ID
    assert select_voice_id(None) == JOBS_VOICE_ID

def test_truncate_text():
    assert truncate_text('short') == 'short'
    truncated = truncate_text('a' * 700)
    assert len(truncated) == MAX_CHARS + 3
    assert truncated.endswith('...')

@pytest.mark.asyncio
async def test_missing_api_key_returns_fallback():
    result = await make_service(api_key='').synthesize('Hello', persona='Steve Jobs')
    assert isinstance(result, VoiceFallback)
    assert result.to_dict() == {
        'fallback': True,
        'reason': 'missing_api_key',
        'text': 'Hello',
        'persona': 'Steve Jobs'
    }

@pytest.mark.asyncio
async def test_synthesize_success_truncates_payload():
    with patch('aiohttp.ClientSession.post', return_value=FakeResponse(200, b'mp3-bytes')) as mock_post:
        result = await make_service().synthesize('x' * 700, persona='Fei-Fei Li')

    assert isinstance(result, AudioResult)
    assert result.audio == b'mp3-bytes'
    assert result.voice_id == FEI_FEI_VOICE_ID

    mock_post.assert_called_once()
    url = mock_post.call_args[0][0]
    payload = mock_post.call_args[1]['json']
    assert url.endswith(f'/text-to-speech/{FEI_FEI_VOICE_ID}')
    assert len(payload['text']) == MAX_CHARS + 3
    assert payload['model_id'] == 'eleven_monolingual_v1'
    assert mock_post.call_args[1]['headers']['xi-api-key'] == 'test-key'

@pytest.mark.asyncio
async def test_quota_exceeded_retries_once_with_short_text():
    responses = [
        FakeResponse(401, b'{"detail": {"status": "quota_exceeded"}}'),
        FakeResponse(200, b'short-audio')
    ]
    with patch('aiohttp.ClientSession.post', side_effect=responses) as mock_post:
        result = await make_service().synthesize('y' * 300, persona='Steve Jobs')

    assert isinstance(result, AudioResult)
    assert result.audio == b'short-audio'
    assert mock_post.call_count == 2
    assert len(mock_post.call_args_list[1][1]['json']['text']) == RETRY_CHARS

@pytest.mark.asyncio
async def test_provider_error_returns_fallback_with_status():
    with patch('aiohttp.ClientSession.post', return_value=FakeResponse(500, b'boom')) as mock_post:
        result = await make_service().synthesize('Hello', persona='Walt Disney')

    assert isinstance(result, VoiceFallback)
    assert result.reason == 'api_error_500'
    mock_post.assert_called_once()

@pytest.mark.asyncio
async def test_transport_exception_returns_fallback():
    with patch('aiohttp.ClientSession.post', side_effect=ConnectionError('network down')):
        result = await make_service().synthesize('Hello')

    assert isinstance(result, VoiceFallback)
    assert result.reason == 'exception'
    assert result.text == 'Hello'

@pytest.mark.asyncio
async def test_get_voices_without_key_uses_fallback_pair():
    voices = await make_service(api_key='').get_voices()
    assert voices == FALLBACK_VOICES

@pytest.mark.asyncio
async def test_get_voices_maps_catalog():
    catalog = {'voices': [{'voice_id': 'v1', 'name': 'One', 'category': 'cloned'}]}
    with patch('aiohttp.ClientSession.get', return_value=FakeResponse(200, json_data=catalog)):
        voices = await make_service().get_voices()
    assert voices == [{'voice_id': 'v1', 'name': 'One'}]

@pytest.mark.asyncio
async def test_get_voices_error_status_uses_fallback_pair():
    with patch('aiohttp.ClientSession.get', return_value=FakeResponse(403, b'forbidden')):
        voices = await make_service().get_voices()
    assert voices == FALLBACK_VOICES

@pytest.mark.asyncio
async def test_get_all_voices_returns_empty_on_failure():
    with patch('aiohttp.ClientSession.get', side_effect=ConnectionError('down')):
        assert await make_service().get_all_voices() == []
    assert await make_service(api_key='').get_all_voices() == []

class SteppingClock:
    """Fake monotonic clock that records sleeps and provider calls in order"""

    def __init__(self, now=100.0):
        self.now = now
        self.events = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.events.append(('sleep', seconds))
        self.now += seconds

    def provider_call(self, status=200, body=b'audio', elapsed=0.0):
        def respond(*args, **kwargs):
            self.events.append(('post',))
            self.now += elapsed
            return FakeResponse(status, body)
        return respond

def spaced_service(clock):
    return VoiceService(api_key='test-key', rate_limiter=RateLimiter(delay=1.0, clock=clock, sleep=clock.sleep))

@pytest.mark.asyncio
async def test_back_to_back_calls_are_spaced_before_the_provider_call():
    clock = SteppingClock()
    service = spaced_service(clock)

    with patch('aiohttp.ClientSession.post', side_effect=clock.provider_call()):
        first = await service.synthesize('One', persona='Steve Jobs')
        second = await service.synthesize('Two', persona='Steve Jobs')

    assert isinstance(first, AudioResult)
    assert isinstance(second, AudioResult)
    assert clock.events == [('post',), ('sleep', 1.0), ('post',)]

@pytest.mark.asyncio
async def test_success_spaces_next_call_from_completion():
    clock = SteppingClock()
    service = spaced_service(clock)

    with patch('aiohttp.ClientSession.post', side_effect=clock.provider_call(elapsed=5.0)):
        await service.synthesize('One')
        await service.synthesize('Two')

    assert clock.events == [('post',), ('sleep', 1.0), ('post',)]

@pytest.mark.asyncio
async def test_failed_call_does_not_push_cursor():
    clock = SteppingClock()
    service = spaced_service(clock)

    with patch('aiohttp.ClientSession.post', side_effect=clock.provider_call(500, b'boom', elapsed=5.0)):
        first = await service.synthesize('One')
        await service.synthesize('Two')

    assert first.reason == 'api_error_500'
    assert clock.events == [('post',), ('post',)]
