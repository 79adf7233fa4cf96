import json
import logging
from typing import Any, Dict, List, Optional

from twin_api.services.storage import StorageService, fallback_agents

logger = logging.getLogger(__name__)

class AgentFeed:
    """Messages for the /ws agents feed"""

    def __init__(self, storage_service: StorageService):
        self.storage = storage_service

    def agents(self) -> List[Dict[str, Any]]:
        try:
            return self.storage.get_agents()
        except Exception as e:
            logger.error(f"Error fetching agents for feed (serving fallback): {str(e)}")
            return fallback_agents()

    def snapshot(self) -> str:
        return json.dumps({'type': 'agents_update', 'data': self.agents()}, default=str)

    def apply(self, message: Optional[str]) -> bool:
        """Apply one client message; True means the feed should be re-sent"""
        try:
            data = json.loads(message or '')
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed WebSocket message: {message!r}")
            return False

        if not isinstance(data, dict):
            return False

        if data.get('type') == 'update_status':
            self.storage.update_agent_status(data.get('agentId'), data.get('status'))
            return True
        if data.get('type') == 'update_metrics':
            self.storage.update_agent_metrics(data.get('agentId'), data.get('metrics'))
            return True

        logger.info(f"Ignoring WebSocket message of type: {data.get('type')}")
        return False
