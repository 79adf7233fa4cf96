import logging
import time
from typing import Any, Dict, Optional

import aiohttp
import jwt

from twin_lib.error_handler import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

ZOOM_API_URL = 'https://api.zoom.us/v2'
SDK_TOKEN_TTL = 60 * 60 * 2
API_TOKEN_TTL = 60 * 60

MEETING_SETTINGS = {
    'host_video': True,
    'participant_video': True,
    'join_before_host': False,
    'mute_upon_entry': False,
    'waiting_room': False
}

class ZoomService:
    def __init__(
        self,
        api_key: str = '',
        api_secret: str = '',
        sdk_key: str = '',
        sdk_secret: str = '',
        user_id: str = 'me',
        base_url: str = ZOOM_API_URL
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.sdk_key = sdk_key
        self.sdk_secret = sdk_secret
        self.user_id = user_id or 'me'
        self.base_url = base_url
        if not (sdk_key and sdk_secret):
            logger.warning("ZOOM_SDK_KEY or ZOOM_SDK_SECRET not set. Zoom functionality will be limited.")

    @staticmethod
    def _issued_at() -> int:
        # Backdated to tolerate clock skew on Zoom's side
        return int(time.time()) - 30

    def generate_sdk_signature(self, meeting_number: str, role: int = 0) -> str:
        """
        Signed token for joining a meeting through the Meeting SDK.
        role is 0 for participant, 1 for host.
        """
        if not (self.sdk_key and self.sdk_secret):
            raise ConfigurationError('Zoom SDK credentials not configured')

        iat = self._issued_at()
        exp = iat + SDK_TOKEN_TTL
        payload = {
            'iss': self.sdk_key,
            'exp': exp,
            'iat': iat,
            'aud': 'zoom',
            'appKey': self.sdk_key,
            'tokenExp': exp,
            'sdkKey': self.sdk_key,
            'mn': meeting_number,
            'role': role
        }
        return jwt.encode(payload, self.sdk_secret, algorithm='HS256')

    def generate_api_token(self) -> str:
        if not (self.api_key and self.api_secret):
            raise ConfigurationError('Zoom API credentials not configured')

        iat = self._issued_at()
        payload = {'iss': self.api_key, 'exp': iat + API_TOKEN_TTL, 'iat': iat}
        return jwt.encode(payload, self.api_secret, algorithm='HS256')

    async def create_meeting(self, topic: str, start_time: Optional[str] = None) -> Dict[str, Any]:
        """Create a scheduled meeting; provider failures are raised, not swallowed"""
        token = self.generate_api_token()

        meeting_data: Dict[str, Any] = {
            'topic': topic,
            'type': 2,
            'settings': dict(MEETING_SETTINGS)
        }
        if start_time:
            meeting_data['start_time'] = start_time

        headers = {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json'
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    f"{self.base_url}/users/{self.user_id}/meetings",
                    json=meeting_data,
                    headers=headers
                ) as response:
                    if response.status >= 300:
                        error = await response.text()
                        raise ProviderError(f"Zoom API error: {response.status} {error}")
                    meeting = await response.json()
                    logger.info(f"Created Zoom meeting {meeting.get('id')} for topic: {topic}")
                    return meeting
        except ProviderError:
            logger.error(f"Error creating Zoom meeting for topic: {topic}")
            raise
        except Exception as e:
            logger.error(f"Error creating Zoom meeting: {str(e)}")
            raise ProviderError(f"Zoom API request failed: {str(e)}")
