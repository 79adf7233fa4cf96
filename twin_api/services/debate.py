import logging
from typing import List, Optional
from pydantic import BaseModel

from twin_api.services.voice import AudioResult, VoiceService

logger = logging.getLogger(__name__)

DEFAULT_SPEAKERS = ['Albert Einstein', 'Steve Jobs']

class DebateTurn(BaseModel):
    speaker: str
    text: str

class DebateResult(BaseModel):
    topic: str
    turns: List[DebateTurn]
    combined_text: str
    audio: Optional[bytes] = None

def craft_perspective(speaker: str, topic: str, index: int) -> str:
    """Scripted placeholder line for one speaker's turn"""
    base = topic.strip()
    if speaker == 'Albert Einstein':
        return (
            f'From a theoretical and systemic perspective, "{base}" demands that we examine '
            'fundamental assumptions, reduce them to first principles, then recompose them into '
            'models we can test. Practical progress emerges when abstraction meets empirical validation.'
        )
    if speaker == 'Steve Jobs':
        return (
            f'If we care about "{base}", we have to start with the user experience and work backwards '
            'to the technology. Focus. Eliminate the noise. What actually delights or liberates people '
            'here? Build that, relentlessly.'
        )
    return (
        f'{speaker} adds viewpoint #{index + 1} regarding "{base}" focusing on pragmatic '
        'trade-offs and emergent possibilities.'
    )

def render_turns(turns: List[DebateTurn]) -> str:
    return "\n".join(f"*{turn.speaker}:* {turn.text}" for turn in turns)

class DebateGenerator:
    def __init__(self, voice_service: VoiceService):
        self.voice = voice_service

    async def generate(
        self,
        topic: str,
        speakers: Optional[List[str]] = None,
        rounds: int = 1,
        include_audio: bool = False
    ) -> DebateResult:
        if speakers is None:
            speakers = list(DEFAULT_SPEAKERS)

        turns = []
        for round_index in range(rounds):
            for i, speaker in enumerate(speakers):
                turns.append(DebateTurn(
                    speaker=speaker,
                    text=craft_perspective(speaker, topic, round_index * len(speakers) + i)
                ))

        audio = None
        if include_audio:
            audio = await self._synthesize_turns(turns)

        return DebateResult(
            topic=topic,
            turns=turns,
            combined_text=render_turns(turns),
            audio=audio
        )

    async def _synthesize_turns(self, turns: List[DebateTurn]) -> Optional[bytes]:
        chunks = []
        for turn in turns:
            try:
                result = await self.voice.synthesize(turn.text, persona=turn.speaker)
                if isinstance(result, AudioResult):
                    chunks.append(result.audio)
                else:
                    logger.warning(f"No audio for {turn.speaker}: {result.reason}")
            except Exception as e:
                logger.error(f"Audio synthesis failed for {turn.speaker}: {str(e)}")

        if not chunks:
            return None
        return b"".join(chunks)
