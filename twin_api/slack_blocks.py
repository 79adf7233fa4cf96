import json
from typing import Any, Dict, List, Optional

from twin_api.personas import all_personas, get_persona

Block = Dict[str, Any]

HELP_TEXT = (
    "🤖 *DigitalTwin Bot Commands:*\n"
    "• `/chat [message]` - Chat with a digital twin persona\n"
    "• `/personas` - See all available personas\n"
    "• `/debate [topic]` - Generate a debate between personas\n\n"
    "Use `/chat` to start a conversation!"
)

def _mrkdwn_section(text: str) -> Block:
    return {'type': 'section', 'text': {'type': 'mrkdwn', 'text': text}}

def _button(text: str, action_id: str, value: Optional[str] = None) -> Block:
    button = {
        'type': 'button',
        'text': {'type': 'plain_text', 'text': text},
        'action_id': action_id
    }
    if value is not None:
        button['value'] = value
    return button

def persona_selection_blocks() -> List[Block]:
    """Intro, a static select of every persona, and a tip"""
    return [
        _mrkdwn_section(
            "🤖 *Choose a Digital Twin to chat with:*\n"
            "Select from our collection of AI personas based on historical figures and innovators."
        ),
        {
            'type': 'actions',
            'elements': [{
                'type': 'static_select',
                'placeholder': {'type': 'plain_text', 'text': 'Select a persona...'},
                'action_id': 'select_persona',
                'options': [
                    {
                        'text': {'type': 'plain_text', 'text': persona.label},
                        'description': {'type': 'plain_text', 'text': persona.description},
                        'value': persona.id
                    }
                    for persona in all_personas()
                ]
            }]
        },
        {
            'type': 'context',
            'elements': [{
                'type': 'mrkdwn',
                'text': "💡 *Tip:* Each persona has unique expertise and personality based on their real-world counterpart."
            }]
        }
    ]

def queued_message_blocks(intro: str) -> List[Block]:
    """Persona picker headed by a custom intro instead of the stock one"""
    return [_mrkdwn_section(intro)] + persona_selection_blocks()[1:]

def conversation_blocks(persona_id: str, response: str) -> List[Block]:
    persona = get_persona(persona_id)
    label = persona.label if persona else persona_id
    return [
        _mrkdwn_section(f"*{label}:*\n{response}"),
        {
            'type': 'actions',
            'elements': [
                _button("🎤 Get Voice Response", 'generate_voice',
                        json.dumps({'persona': persona_id, 'text': response})),
                _button("💭 Continue Chat", 'continue_chat', persona_id),
                _button("🔄 Switch Persona", 'switch_persona'),
            ]
        }
    ]

def personas_list_blocks() -> List[Block]:
    persona_list = "\n\n".join(
        f"{persona.emoji} *{persona.name}* - {persona.description}\n"
        f"   _Expertise: {', '.join(persona.expertise)}_"
        for persona in all_personas()
    )
    return [
        _mrkdwn_section(f"🤖 *Available Digital Twin Personas:*\n\n{persona_list}"),
        {'type': 'actions', 'elements': [_button("💬 Start Chatting", 'start_chat')]}
    ]

def mention_help_blocks() -> List[Block]:
    return [_mrkdwn_section(
        "👋 Hi! I'm DigitalTwinBot. Here's how to chat with me:\n\n"
        "• `/chat [message]` - Chat with a digital twin persona\n"
        "• `/personas` - See all available personas\n"
        "• `/debate [topic]` - Generate debates between personas\n\n"
        "Or just mention me with a question!"
    )]
