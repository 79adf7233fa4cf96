import logging
import aiohttp
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from pydantic import BaseModel

from twin_api.personas import Persona, get_persona_by_name
from twin_lib.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ELEVENLABS_BASE_URL = 'https://api.elevenlabs.io/v1'
MODEL_ID = 'eleven_monolingual_v1'
MAX_CHARS = 600
RETRY_CHARS = 120
QUOTA_MARKER = 'quota_exceeded'

LEONARDO_VOICE_ID = 'iLVmqjzCGGvqtMCk6vVQ'
JOBS_VOICE_ID = 'RScb7njQ3VwA2nyCsZX4'

VOICE_SETTINGS = {
    'stability': 0.8,
    'similarity_boost': 0.8,
    'style': 0.5,
    'use_speaker_boost': True
}

# Order of the provider voice table; the substring pass walks it in this order
VOICE_TABLE_ORDER = (
    'Leonardo da Vinci',
    'Steve Jobs',
    'Albert Einstein',
    'Elon Musk',
    'Walt Disney',
    'Emad Mostaque',
    'Fei-Fei Li',
)

FALLBACK_VOICES = [
    {'voice_id': LEONARDO_VOICE_ID, 'name': 'Leonardo da Vinci (Fallback)'},
    {'voice_id': JOBS_VOICE_ID, 'name': 'Steve Jobs (Fallback)'}
]

class AudioResult(BaseModel):
    audio: bytes
    persona: Optional[str] = None
    voice_id: str

class VoiceFallback(BaseModel):
    fallback: bool = True
    reason: str
    text: str
    persona: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()

VoiceResult = Union[AudioResult, VoiceFallback]

def _voice_table() -> List[Persona]:
    return [get_persona_by_name(name) for name in VOICE_TABLE_ORDER]

def _match_exact(normalized: str) -> Optional[Persona]:
    for persona in _voice_table():
        if persona.name.lower() == normalized:
            return persona
    return None

def _match_alias(normalized: str) -> Optional[Persona]:
    for persona in _voice_table():
        if normalized in persona.aliases:
            return persona
    return None

def _match_substring(normalized: str) -> Optional[Persona]:
    # Known weak spot: a short input can be contained in more than one name,
    # in which case the first entry of the voice table wins.
    for persona in _voice_table():
        key = persona.name.lower()
        if key in normalized or normalized in key:
            return persona
    return None

MATCH_STRATEGIES: Tuple[Callable[[str], Optional[Persona]], ...] = (
    _match_exact,
    _match_alias,
    _match_substring,
)

def resolve_voice_id_for_persona(name: Optional[str]) -> Optional[str]:
    """Map a persona name, or a near miss of one, to its provider voice id.

    Strategies run in order: exact name (case-insensitive), the alias table of
    known misspellings, then substring containment in either direction.
    """
    if not name:
        return None
    normalized = name.lower().strip()
    if not normalized:
        return None
    for strategy in MATCH_STRATEGIES:
        persona = strategy(normalized)
        if persona is not None:
            return persona.voice_id
    return None

def default_voice_id(persona: Optional[str]) -> str:
    if persona and 'leonardo' in persona.lower():
        return LEONARDO_VOICE_ID
    return JOBS_VOICE_ID

def select_voice_id(persona: Optional[str] = None, voice_id: Optional[str] = None) -> str:
    if voice_id:
        return voice_id
    return resolve_voice_id_for_persona(persona) or default_voice_id(persona)

def truncate_text(text: str, max_chars: int = MAX_CHARS) -> str:
    if len(text) > max_chars:
        return text[:max_chars] + '...'
    return text

class VoiceService:
    def __init__(
        self,
        api_key: str,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = ELEVENLABS_BASE_URL
    ):
        self.api_key = api_key
        self.rate_limiter = rate_limiter or RateLimiter()
        self.base_url = base_url
        if not self.api_key:
            logger.warning("ELEVENLABS_API_KEY not set, voice synthesis will use fallback")
        logger.info(f"Voice service initialized, API key present: {bool(self.api_key)}")

    async def synthesize(
        self,
        text: str,
        persona: Optional[str] = None,
        voice_id: Optional[str] = None
    ) -> VoiceResult:
        """Synthesize speech for `text`, returning audio or a fallback descriptor.

        Never raises: missing credentials, provider errors and transport
        exceptions all come back as a VoiceFallback with a reason code.
        """
        try:
            if not self.api_key:
                logger.info("No API key: returning fallback")
                return VoiceFallback(reason='missing_api_key', text=text, persona=persona)

            payload_text = truncate_text(text)
            await self.rate_limiter.acquire()

            selected_voice_id = select_voice_id(persona, voice_id)
            logger.info(
                f"Making voice synthesis request: persona={persona}, "
                f"voice_id={selected_voice_id}, text_length={len(payload_text)}"
            )

            async with aiohttp.ClientSession() as session:
                status, body = await self._request_speech(session, selected_voice_id, payload_text)

                if status != 200 and QUOTA_MARKER in body.decode('utf-8', errors='replace'):
                    logger.warning("Voice quota exceeded, retrying once with shortened text")
                    status, body = await self._request_speech(session, selected_voice_id, text[:RETRY_CHARS])

            if status != 200:
                logger.error(f"ElevenLabs API error: status={status}, body={body[:200]!r}")
                return VoiceFallback(reason=f'api_error_{status}', text=text, persona=persona)

            self.rate_limiter.record_success()
            logger.info(f"Voice synthesis successful: persona={persona}, audio_size={len(body)}")
            return AudioResult(audio=body, persona=persona, voice_id=selected_voice_id)

        except Exception as e:
            logger.error(f"Speech synthesis failed (exception): {str(e)}", exc_info=True)
            return VoiceFallback(reason='exception', text=text, persona=persona)

    async def _request_speech(self, session, voice_id: str, text: str) -> Tuple[int, bytes]:
        payload = {
            'text': text,
            'model_id': MODEL_ID,
            'voice_settings': VOICE_SETTINGS
        }
        headers = {
            'Accept': 'audio/mpeg',
            'Content-Type': 'application/json',
            'xi-api-key': self.api_key
        }
        async with session.post(
            f"{self.base_url}/text-to-speech/{voice_id}",
            json=payload,
            headers=headers
        ) as response:
            return response.status, await response.read()

    async def get_voices(self) -> List[Dict[str, str]]:
        """Fetch the provider's voice catalog, or the fixed fallback pair on any failure"""
        if not self.api_key:
            logger.info("Cannot fetch voices without an API key, using fallback voices")
            return list(FALLBACK_VOICES)

        try:
            logger.info("Fetching voices from ElevenLabs API...")
            data = await self._fetch_voices()
            if data is None:
                return list(FALLBACK_VOICES)
            return [
                {'voice_id': voice['voice_id'], 'name': voice['name']}
                for voice in data.get('voices', [])
            ]
        except Exception as e:
            logger.error(f"Error fetching voices: {str(e)}")
            return list(FALLBACK_VOICES)

    async def get_all_voices(self) -> List[Dict[str, Any]]:
        """Fetch every voice the account can use, including trained ones"""
        if not self.api_key:
            logger.warning("Cannot fetch voices: ELEVENLABS_API_KEY not set")
            return []

        try:
            data = await self._fetch_voices()
            if data is None:
                return []
            voices = data.get('voices') or []
            logger.info(f"Available ElevenLabs voices: {[voice.get('name') for voice in voices]}")
            return voices
        except Exception as e:
            logger.error(f"Error fetching all voices: {str(e)}")
            return []

    async def _fetch_voices(self) -> Optional[Dict[str, Any]]:
        headers = {
            'Accept': 'application/json',
            'xi-api-key': self.api_key
        }
        async with aiohttp.ClientSession() as session:
            async with session.get(f"{self.base_url}/voices", headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(f"Error fetching voices: status={response.status}, body={error_text[:200]}")
                    return None
                return await response.json()
