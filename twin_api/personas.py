from typing import Dict, List, Optional
from pydantic import BaseModel

class Persona(BaseModel):
    id: str
    name: str
    expertise: List[str]
    voice_id: str
    aliases: List[str] = []
    emoji: str
    description: str
    agent_type: str
    avatar_seed: str

    @property
    def avatar(self) -> str:
        return f"https://api.dicebear.com/7.x/avataaars/svg?seed={self.avatar_seed}"

    @property
    def label(self) -> str:
        return f"{self.emoji} {self.name}"

PERSONAS: List[Persona] = [
    Persona(
        id="albert-einstein",
        name="Albert Einstein",
        expertise=["Innovation", "Research", "Problem Solving"],
        voice_id="e2odxVHlmLJ5GY1yuWNl",
        emoji="🧠",
        description="Theoretical physicist and innovator",
        agent_type="Theoretical Physics",
        avatar_seed="Einstein",
    ),
    Persona(
        id="elon-musk",
        name="Elon Musk",
        expertise=["Innovation", "Strategic Thinking", "Product Development"],
        voice_id="3ltnAVoovAIVA7uE9Zbz",
        emoji="🚀",
        description="Tech entrepreneur and visionary",
        agent_type="Tech Entrepreneur",
        avatar_seed="Musk",
    ),
    Persona(
        id="steve-jobs",
        name="Steve Jobs",
        expertise=["Innovation", "Product Development", "Design"],
        voice_id="RScb7njQ3VwA2nyCsZX4",
        emoji="🍎",
        description="Tech visionary and design pioneer",
        agent_type="Tech Visionary",
        avatar_seed="Jobs",
    ),
    Persona(
        id="leonardo-da-vinci",
        name="Leonardo da Vinci",
        expertise=["Innovation", "Art", "Engineering", "Design Thinking"],
        voice_id="iLVmqjzCGGvqtMCk6vVQ",
        emoji="🎨",
        description="Renaissance innovator and polymath",
        agent_type="Renaissance Innovator",
        avatar_seed="DaVinci",
    ),
    Persona(
        id="walt-disney",
        name="Walt Disney",
        expertise=["Creativity", "Innovation", "Storytelling"],
        voice_id="1KmhFCCzy2hRrIDMEXFZ",
        emoji="🏰",
        description="Creative visionary and storyteller",
        agent_type="Creative Visionary",
        avatar_seed="Disney",
    ),
    Persona(
        id="emad-mostaque",
        name="Emad Mostaque",
        expertise=["Artificial Intelligence", "Leadership", "Technical Vision"],
        voice_id="OXihjRbFbxh4LfP9Wt5H",
        emoji="🤖",
        description="AI innovator and leader",
        agent_type="AI Innovator",
        avatar_seed="Mostaque",
    ),
    Persona(
        id="fei-fei-li",
        name="Fei-Fei Li",
        expertise=["Artificial Intelligence", "Research", "Technical Vision"],
        voice_id="JL6vl3xyRi3Ly7WoywNO",
        aliases=[
            "fei fei li",
            "fei-fei li",
            "feifei li",
            "fi fi lee",
            "fei fei lee",
            "fei-fei lee",
            "fifi li",
            "fei fei le",
            "fei-fei le",
            "fe fe li",
            "fe fe le",
            "fi fi li",
        ],
        emoji="👩‍🔬",
        description="AI researcher and computer vision expert",
        agent_type="AI Research",
        avatar_seed="Li",
    ),
]

_BY_ID: Dict[str, Persona] = {persona.id: persona for persona in PERSONAS}
_BY_NAME: Dict[str, Persona] = {persona.name: persona for persona in PERSONAS}

def all_personas() -> List[Persona]:
    return list(PERSONAS)

def get_persona(persona_id: Optional[str]) -> Optional[Persona]:
    """Look up a persona by its stable identifier"""
    if not persona_id:
        return None
    return _BY_ID.get(persona_id)

def get_persona_by_name(name: Optional[str]) -> Optional[Persona]:
    """Look up a persona by its exact canonical name"""
    if not name:
        return None
    return _BY_NAME.get(name)
