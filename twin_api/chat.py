import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel

from twin_api.personas import get_persona

logger = logging.getLogger(__name__)

class ConversationContext(BaseModel):
    user_id: str
    selected_persona: Optional[str] = None
    history: List[Dict[str, Any]] = []
    last_activity: float = 0.0

    def add_user_message(self, content: str) -> None:
        self.history.append({'role': 'user', 'content': content})

    def add_exchange(self, message: str, response: str, persona: str) -> None:
        self.history.append({'role': 'user', 'content': message})
        self.history.append({'role': 'assistant', 'content': response, 'persona': persona})

class ConversationStore:
    """Per-user conversation contexts for the Slack integration.

    Bounded LRU keyed by user id: contexts idle for longer than `idle_timeout`
    seconds are dropped, and the least recently used context goes once more
    than `max_users` are held. State lives in process memory only.
    """

    def __init__(
        self,
        max_users: int = 1000,
        idle_timeout: Optional[float] = 86400,
        clock: Callable[[], float] = time.time
    ):
        self.max_users = max_users
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._contexts: "OrderedDict[str, ConversationContext]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, user_id: str) -> ConversationContext:
        """Return the context for `user_id`, creating it on first use"""
        with self._lock:
            now = self._clock()
            self._evict_idle(now)

            context = self._contexts.get(user_id)
            if context is None:
                context = ConversationContext(user_id=user_id, last_activity=now)
                self._contexts[user_id] = context
                logger.info(f"Created conversation context for {user_id}")
            else:
                self._contexts.move_to_end(user_id)

            context.last_activity = max(context.last_activity, now)

            while len(self._contexts) > self.max_users:
                evicted, _ = self._contexts.popitem(last=False)
                logger.info(f"Evicted least recently used conversation context for {evicted}")

            return context

    def _evict_idle(self, now: float) -> None:
        if self.idle_timeout is None:
            return
        expired = [
            user_id for user_id, context in self._contexts.items()
            if now - context.last_activity > self.idle_timeout
        ]
        for user_id in expired:
            del self._contexts[user_id]
            logger.info(f"Expired idle conversation context for {user_id}")

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._contexts

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    def clear(self) -> None:
        with self._lock:
            self._contexts.clear()

def generate_persona_response(persona_id: str, message: str, history: List[Dict[str, Any]]) -> str:
    """
    Build an in-character reply for the selected persona.
    Replies are templated placeholders; no model is called.
    """
    persona = get_persona(persona_id)
    if not persona:
        return "I'm sorry, I couldn't find that persona."

    return (
        f'As {persona.name}, {persona.description.lower()}, I find your question about "{message}" '
        f'quite intriguing. Based on my expertise in {persona.expertise[0]}, I would suggest we look at '
        f'it from first principles and work towards something people actually need.'
    )
