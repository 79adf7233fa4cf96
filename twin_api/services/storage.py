import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from twin_api.personas import all_personas
from twin_lib.error_handler import StorageUnavailableError

logger = logging.getLogger(__name__)

EMPTY_METRICS = {'requests_handled': 0, 'success_rate': 0, 'avg_response_time': 0}

DEFAULT_TWIN_CONFIGURATION = {
    'personality': 'friendly',
    'voice_id': '21m00Tcm4TlvDq8ikWAM',
    'voice_settings': {
        'stability': 0.75,
        'similarityBoost': 0.75,
        'style': 0.5,
        'speakerBoost': True
    }
}

def core_agents() -> List[Dict[str, Any]]:
    """The seven core personas as agent records, without ids"""
    return [
        {
            'name': persona.name,
            'type': persona.agent_type,
            'capabilities': persona.expertise[:3],
            'avatar': persona.avatar,
            'status': 'active'
        }
        for persona in sorted(all_personas(), key=lambda p: p.name)
    ]

def fallback_agents() -> List[Dict[str, Any]]:
    """Fixed roster served when the agents table cannot be read"""
    return [
        {'id': index, **agent, 'metrics': dict(EMPTY_METRICS)}
        for index, agent in enumerate(core_agents(), start=1)
    ]

def fallback_digital_twins() -> List[Dict[str, Any]]:
    return [{
        'id': 1,
        'name': 'Einstein Digital Twin',
        'description': 'AI-powered digital twin of Albert Einstein',
        'type': 'AI Assistant',
        'status': 'active',
        'avatar': 'https://api.dicebear.com/7.x/avataaars/svg?seed=Einstein',
        'capabilities': ['Physics', 'Innovation', 'Problem Solving']
    }]

def _mock_id() -> int:
    return random.randint(0, 999)

class StorageService:
    """Access to the agents, digital_twins and conversations tables.

    Reads go to Supabase. Writes are not persisted yet and hand back
    fabricated records shaped like the stored rows.
    """

    def __init__(self, supabase_client=None):
        self.supabase = supabase_client
        self.agents_table = 'agents'
        self.twins_table = 'digital_twins'
        self.conversations_table = 'conversations'
        logger.info(f"Storage service initialized with backend: {bool(supabase_client)}")

    @property
    def available(self) -> bool:
        return self.supabase is not None

    def _table(self, name: str):
        if self.supabase is None:
            raise StorageUnavailableError()
        return self.supabase.table(name)

    # Agent operations

    def get_agents(self) -> List[Dict[str, Any]]:
        result = self._table(self.agents_table).select('*').execute()
        return result.data or []

    def create_agent(self, agent: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"create_agent called with: {agent}")
        mock_agent = {
            'id': _mock_id(),
            'name': agent.get('name') or 'Unknown',
            'type': agent.get('type') or 'Unknown',
            'capabilities': agent.get('capabilities') or [],
            'avatar': agent.get('avatar') or '',
            'status': agent.get('status') or 'idle',
            'metrics': dict(EMPTY_METRICS)
        }
        logger.info(f"Returning mock agent: {mock_agent}")
        return mock_agent

    def update_agent_status(self, agent_id: int, status: str) -> Dict[str, Any]:
        logger.info(f"update_agent_status called with id: {agent_id}, status: {status}")
        return {
            'id': agent_id,
            'name': 'Mock Agent',
            'type': 'Unknown',
            'capabilities': [],
            'avatar': '',
            'status': status,
            'metrics': dict(EMPTY_METRICS)
        }

    def update_agent_metrics(self, agent_id: int, metrics: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"update_agent_metrics called with id: {agent_id}, metrics: {metrics}")
        return {
            'id': agent_id,
            'name': 'Mock Agent',
            'type': 'Unknown',
            'capabilities': [],
            'avatar': '',
            'status': 'idle',
            'metrics': metrics
        }

    def cleanup_duplicate_agents(self) -> int:
        """Delete agents sharing a name, keeping the lowest id of each name"""
        try:
            by_name: Dict[str, List[Dict[str, Any]]] = {}
            for agent in self.get_agents():
                by_name.setdefault(agent['name'], []).append(agent)

            removed = 0
            for name, agents in by_name.items():
                if len(agents) < 2:
                    continue
                agents.sort(key=lambda a: a['id'])
                for duplicate in agents[1:]:
                    self._table(self.agents_table).delete().eq('id', duplicate['id']).execute()
                    removed += 1
                    logger.info(f"Removed duplicate agent: {name} (ID: {duplicate['id']})")
            return removed
        except Exception as e:
            logger.error(f"Error cleaning up duplicate agents: {str(e)}")
            return 0

    def seed_default_agents(self) -> List[str]:
        """Create whichever core personas are missing from the agents table"""
        existing = self.get_agents()
        existing_names = {agent['name'] for agent in existing}

        if existing:
            self.cleanup_duplicate_agents()
            logger.info("Cleaned up any duplicate agents")

        created = []
        for agent in core_agents():
            if agent['name'] in existing_names:
                logger.info(f"Agent already exists: {agent['name']}")
                continue
            self.create_agent(agent)
            created.append(agent['name'])
            logger.info(f"Created agent: {agent['name']}")

        logger.info("Digital twin initialization complete")
        return created

    # Digital twin operations

    def get_digital_twins(self) -> List[Dict[str, Any]]:
        result = self._table(self.twins_table).select('*').execute()
        return result.data or []

    def create_digital_twin(self, twin: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"create_digital_twin called with: {twin.get('name')}")
        now = datetime.now().isoformat()
        return {
            'id': _mock_id(),
            'name': twin.get('name') or 'Unknown Twin',
            'description': twin.get('description') or '',
            'type': twin.get('type') or 'Unknown',
            'status': twin.get('status') or 'active',
            'avatar': twin.get('avatar') or '',
            'capabilities': twin.get('capabilities') or [],
            'metadata': twin.get('metadata') or {},
            'createdAt': now,
            'updatedAt': now,
            'configuration': twin.get('configuration') or DEFAULT_TWIN_CONFIGURATION
        }

    def update_digital_twin(self, twin_id: int, updates: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"update_digital_twin called with id: {twin_id}, updates: {updates}")
        twin = self.create_digital_twin({'name': 'Mock Twin', **updates})
        twin['id'] = twin_id
        return twin

    # Conversation operations

    def get_conversations(self) -> List[Dict[str, Any]]:
        result = self._table(self.conversations_table).select('*').execute()
        return result.data or []

    def get_conversation(self, conversation_id: int) -> Optional[Dict[str, Any]]:
        result = self._table(self.conversations_table)\
            .select('*')\
            .eq('id', conversation_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def get_conversations_by_participant(self, participant: str) -> List[Dict[str, Any]]:
        result = self._table(self.conversations_table)\
            .select('*')\
            .contains('participants', [participant])\
            .execute()
        return result.data or []

    def create_conversation(self, conversation: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"create_conversation called with: {conversation}")
        now = datetime.now().isoformat()
        return {
            'id': _mock_id(),
            'title': conversation.get('title') or 'Unknown Conversation',
            'participants': conversation.get('participants') or [],
            'topic': conversation.get('topic') or '',
            'transcript': conversation.get('transcript') or '',
            'metadata': conversation.get('metadata') or {},
            'createdAt': now,
            'updatedAt': now
        }
