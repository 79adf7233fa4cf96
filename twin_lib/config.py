from typing import List
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()

DEFAULT_ALLOWED_ORIGINS = (
    "https://digital-frontend-1rc0.onrender.com,"
    "https://test-digital-twin-2.onrender.com,"
    "http://localhost:3000,"
    "http://localhost:3001,"
    "http://localhost:5173,"
    "http://localhost:4173"
)

class Settings(BaseSettings):
    # ElevenLabs settings
    elevenlabs_api_key: str = ''
    voice_rate_limit_delay: float = 1.0

    # Slack settings
    slack_signing_secret: str = ''
    slack_bot_token: str = ''
    debate_audio: bool = True

    # Zoom settings
    zoom_api_key: str = ''
    zoom_api_secret: str = ''
    zoom_sdk_key: str = ''
    zoom_sdk_secret: str = ''
    zoom_user_id: str = 'me'

    # Supabase settings
    supabase_url: str = ''
    supabase_key: str = ''

    # Conversation store limits
    conversation_max_users: int = 1000
    conversation_idle_timeout: float = 86400

    # Server settings
    allowed_origins: str = DEFAULT_ALLOWED_ORIGINS
    port: int = 5000

    @property
    def origins(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(',') if origin.strip()]

    @property
    def storage_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def zoom_sdk_configured(self) -> bool:
        return bool(self.zoom_sdk_key and self.zoom_sdk_secret)

    @property
    def zoom_api_configured(self) -> bool:
        return bool(self.zoom_api_key and self.zoom_api_secret)

def get_settings() -> Settings:
    return Settings()
