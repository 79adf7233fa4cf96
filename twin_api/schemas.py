from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

class AgentCreate(BaseModel):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    capabilities: List[str] = []
    avatar: str = ''
    status: str = 'idle'
    metrics: Optional[Dict[str, Any]] = None

class DigitalTwinCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ''
    type: str = 'AI Assistant'
    status: str = 'active'
    avatar: str = ''
    capabilities: List[str] = []
    configuration: Optional[Dict[str, Any]] = None

class ConversationCreate(BaseModel):
    title: str = Field(min_length=1)
    participants: List[str] = []
    topic: str = ''
    transcript: str = ''
    metadata: Optional[Dict[str, Any]] = None

class SynthesizeRequest(BaseModel):
    text: str
    persona: Optional[str] = None
    voiceId: Optional[str] = None

class VoiceSynthesisRequest(BaseModel):
    text: str = Field(min_length=1, max_length=500)
    persona: Optional[str] = None
