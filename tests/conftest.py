import asyncio
import hashlib
import hmac
import time
import pytest
from unittest.mock import AsyncMock, MagicMock

from twin_api.chat import ConversationStore
from twin_api.routes import create_app
from twin_api.services.storage import StorageService
from twin_api.services.voice import VoiceService
from twin_lib.config import Settings
from twin_lib.rate_limiter import RateLimiter

SIGNING_SECRET = 'test-signing-secret'

class RecordingRunner:
    """Stands in for BackgroundRunner: records spawned work so tests can run it on demand"""

    def __init__(self):
        self.spawned = []

    def spawn(self, coro, description="background task"):
        self.spawned.append((description, coro))

    def run_all(self):
        while self.spawned:
            _, coro = self.spawned.pop(0)
            asyncio.run(coro)

    def close(self):
        for _, coro in self.spawned:
            coro.close()
        self.spawned = []

async def _no_sleep(seconds):
    return None

def sign(body: str, timestamp: str = None, secret: str = SIGNING_SECRET):
    """Headers for a Slack v0 signed request"""
    timestamp = timestamp or str(int(time.time()))
    basestring = f"v0:{timestamp}:{body}".encode('utf-8')
    digest = hmac.new(secret.encode('utf-8'), basestring, hashlib.sha256).hexdigest()
    return {
        'X-Slack-Request-Timestamp': timestamp,
        'X-Slack-Signature': f"v0={digest}"
    }

@pytest.fixture
def settings():
    return Settings(
        elevenlabs_api_key='',
        slack_signing_secret=SIGNING_SECRET,
        slack_bot_token='',
        supabase_url='',
        supabase_key='',
        zoom_sdk_key='',
        zoom_sdk_secret='',
        debate_audio=False
    )

@pytest.fixture
def runner():
    recording = RecordingRunner()
    yield recording
    recording.close()

@pytest.fixture
def slack_client():
    client = MagicMock()
    client.enabled = True
    client.post_message = AsyncMock()
    client.post_ephemeral = AsyncMock()
    client.upload_file = AsyncMock()
    return client

@pytest.fixture
def conversations():
    return ConversationStore(max_users=10, idle_timeout=3600)

@pytest.fixture
def voice_service():
    return VoiceService(api_key='', rate_limiter=RateLimiter(delay=0, sleep=_no_sleep))

@pytest.fixture
def storage_service():
    return StorageService(supabase_client=None)

@pytest.fixture
def app(settings, storage_service, voice_service, slack_client, conversations, runner):
    app = create_app(
        settings=settings,
        storage_service=storage_service,
        voice_service=voice_service,
        slack_client=slack_client,
        conversations=conversations,
        runner=runner
    )
    app.config['TESTING'] = True
    return app

@pytest.fixture
def test_client(app):
    return app.test_client()

class FakeResponse:
    """Async context manager shaped like an aiohttp response"""

    def __init__(self, status=200, body=b'', json_data=None):
        self.status = status
        self._body = body
        self._json = json_data

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def read(self):
        return self._body

    async def text(self):
        return self._body.decode('utf-8')

    async def json(self):
        return self._json
