import json
import logging
import re
import time
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import parse_qs

from slack_sdk.signature import Clock, SignatureVerifier

from twin_api.chat import ConversationStore, generate_persona_response
from twin_api.personas import get_persona
from twin_api.services.debate import DebateGenerator
from twin_api.services.voice import AudioResult, VoiceService
from twin_api import slack_blocks
from twin_lib.error_handler import ErrorHandler
from twin_lib.slack_client import SlackClient

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"<@[UW][A-Z0-9]+>")
MAX_UPLOAD_BYTES = 24_000_000
TEXT_PLAIN = {'Content-Type': 'text/plain'}

Response = Tuple[Union[str, Dict[str, Any]], int, Dict[str, str]]

def _text(body: str, status: int = 200) -> Response:
    return body, status, dict(TEXT_PLAIN)

def _json(body: Dict[str, Any], status: int = 200) -> Response:
    return body, status, {}

def _timestamp_ms() -> int:
    return int(time.time() * 1000)

def parse_webhook_body(raw_body: str, content_type: Optional[str]) -> Dict[str, Any]:
    """Decode a Slack webhook body, which is form encoded except for Events API calls"""
    if content_type and 'application/json' in content_type.lower():
        try:
            body = json.loads(raw_body or '{}')
            return body if isinstance(body, dict) else {}
        except ValueError:
            logger.warning("Could not parse JSON webhook body")
            return {}
    return {key: values[0] for key, values in parse_qs(raw_body or '', keep_blank_values=True).items()}

class SlackHandler:
    def __init__(
        self,
        signing_secret: str,
        slack_client: SlackClient,
        conversations: ConversationStore,
        voice_service: VoiceService,
        debate_generator: DebateGenerator,
        runner,
        debate_audio: bool = True,
        clock: Optional[Clock] = None
    ):
        self.signing_secret = signing_secret
        self.slack = slack_client
        self.conversations = conversations
        self.voice = voice_service
        self.debates = debate_generator
        self.runner = runner
        self.debate_audio = debate_audio
        self.verifier = SignatureVerifier(signing_secret, clock=clock or Clock()) if signing_secret else None

    def verify_signature(self, raw_body: str, timestamp: Optional[str], signature: Optional[str]) -> bool:
        """Check the v0 HMAC signature and the five minute replay window"""
        if not self.verifier or not timestamp or not signature:
            return False
        try:
            return self.verifier.is_valid(body=raw_body, timestamp=timestamp, signature=signature)
        except ValueError:
            logger.warning(f"Malformed Slack timestamp: {timestamp}")
            return False

    # Bare /slack endpoint

    def handle_events(self, body: Dict[str, Any]) -> Response:
        """Handle URL verification and Events API callbacks; never gated by signatures"""
        request_type = body.get('type')

        if request_type == 'url_verification':
            return self._url_verification(body)

        event = body.get('event')
        if request_type == 'event_callback' and event:
            self.runner.spawn(self.handle_event(event), f"Slack {event.get('type')} event")
            return _text('OK')

        return _text('OK')

    def _url_verification(self, body: Dict[str, Any]) -> Response:
        challenge = body.get('challenge')
        if isinstance(challenge, str) and challenge:
            logger.info("URL verification received. Responding with challenge.")
            return _text(challenge)
        logger.warning(f"URL verification missing/empty challenge field. Body: {body}")
        return _text('missing_challenge', 400)

    async def handle_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get('type')
        logger.info(f"Handling Slack event: {event_type}")

        if event_type == 'app_mention':
            await self.handle_app_mention(event)
        elif event_type == 'message':
            # Only direct messages, channel chatter is ignored
            if event.get('channel_type') == 'im':
                await self.handle_direct_message(event)
        else:
            logger.info(f"Unhandled Slack event type: {event_type}")

    async def handle_app_mention(self, event: Dict[str, Any]) -> None:
        user = event.get('user', '')
        channel = event.get('channel', '')
        clean_text = MENTION_PATTERN.sub('', event.get('text') or '').strip()

        if not clean_text:
            await self.slack.post_message(channel, '', slack_blocks.mention_help_blocks())
            return

        context = self.conversations.get(user)
        if not context.selected_persona:
            blocks = slack_blocks.queued_message_blocks(
                f"💭 I'd love to help with: \"{clean_text}\"\n\n"
                "First, choose which digital twin persona you'd like to hear from:"
            )
            await self.slack.post_message(channel, '', blocks)
            context.add_user_message(clean_text)
            return

        try:
            await self._respond_as_persona(channel, user, clean_text)
        except Exception as e:
            await self.slack.post_message(channel, ErrorHandler.handle_chat_error(e))

    async def handle_direct_message(self, event: Dict[str, Any]) -> None:
        # Skip bot messages to avoid loops
        if event.get('subtype') == 'bot_message' or event.get('bot_id'):
            return

        user = event.get('user', '')
        channel = event.get('channel', '')
        text = event.get('text') or ''

        context = self.conversations.get(user)
        if not context.selected_persona:
            blocks = slack_blocks.queued_message_blocks(
                "👋 Hi! I'm DigitalTwinBot. I can help you chat with digital twin personas of famous innovators.\n\n"
                f"You said: \"{text}\"\n\nWho would you like to discuss this with?"
            )
            await self.slack.post_message(channel, '', blocks)
            context.add_user_message(text)
            return

        try:
            await self._respond_as_persona(channel, user, text)
        except Exception as e:
            await self.slack.post_message(channel, ErrorHandler.handle_direct_message_error(e))

    async def _respond_as_persona(self, channel: str, user: str, message: str) -> None:
        context = self.conversations.get(user)
        persona_id = context.selected_persona
        response = generate_persona_response(persona_id, message, context.history)
        context.add_exchange(message, response, persona_id)
        await self.slack.post_message(channel, '', slack_blocks.conversation_blocks(persona_id, response))

    # Signed /slack/webhook endpoint

    def handle_webhook(
        self,
        raw_body: str,
        timestamp: Optional[str],
        signature: Optional[str],
        content_type: Optional[str]
    ) -> Response:
        if not self.verify_signature(raw_body, timestamp, signature):
            logger.warning("Rejected Slack webhook with invalid signature")
            return _text('Invalid signature', 401)

        try:
            body = parse_webhook_body(raw_body, content_type)

            if body.get('type') == 'url_verification':
                challenge = body.get('challenge')
                if isinstance(challenge, str):
                    return _text(challenge)
                return _json({'error': 'missing_challenge'}, 400)

            if body.get('payload'):
                return self.handle_interactive(body['payload'])

            return self.handle_command(body)
        except Exception as e:
            logger.error(f"Slack webhook error: {str(e)}", exc_info=True)
            return _text('Internal error', 500)

    def handle_interactive(self, raw_payload: str) -> Response:
        try:
            payload = json.loads(raw_payload)
        except ValueError:
            logger.warning("Could not parse interactive payload")
            return _text('Invalid payload', 400)

        self.runner.spawn(self.handle_action(payload), "Slack interactive action")
        return _text('')

    async def handle_action(self, payload: Dict[str, Any]) -> None:
        user_id = (payload.get('user') or {}).get('id', '')
        channel_id = (payload.get('channel') or {}).get('id', '')
        context = self.conversations.get(user_id)

        actions = payload.get('actions') or []
        if not actions:
            return
        action = actions[0]
        action_id = action.get('action_id')
        logger.info(f"Handling Slack action {action_id} from {user_id}")

        if action_id == 'select_persona':
            selected = (action.get('selected_option') or {}).get('value')
            if selected:
                context.selected_persona = selected
                persona = get_persona(selected)
                label = persona.label if persona else selected
                await self.slack.post_ephemeral(
                    channel_id,
                    user_id,
                    f"✅ Selected {label}! You can now use `/chat [your message]` to start chatting."
                )

        elif action_id == 'generate_voice':
            await self._generate_voice(channel_id, user_id, action.get('value'))

        elif action_id == 'continue_chat':
            persona = get_persona(action.get('value'))
            name = persona.name if persona else action.get('value')
            await self.slack.post_ephemeral(
                channel_id,
                user_id,
                f"💬 Continue chatting with {name} using `/chat [your message]`"
            )

        elif action_id == 'switch_persona':
            context.selected_persona = None
            await self.slack.post_ephemeral(
                channel_id, user_id, "Choose a new persona:", slack_blocks.persona_selection_blocks()
            )

        elif action_id == 'start_chat':
            await self.slack.post_ephemeral(
                channel_id, user_id, "Choose a persona to start chatting:", slack_blocks.persona_selection_blocks()
            )

        else:
            logger.info(f"Unhandled Slack action: {action_id}")

    async def _generate_voice(self, channel_id: str, user_id: str, value: Optional[str]) -> None:
        try:
            voice_data = json.loads(value or '{}')
            persona = get_persona(voice_data.get('persona'))
            persona_name = persona.name if persona else None
            result = await self.voice.synthesize(voice_data.get('text') or '', persona=persona_name)

            if isinstance(result, AudioResult):
                await self.slack.upload_file(
                    channel_id,
                    f"voice-response-{_timestamp_ms()}.mp3",
                    result.audio,
                    f"Voice Response from {persona_name}"
                )
            else:
                await self.slack.post_ephemeral(
                    channel_id,
                    user_id,
                    "🔊 Voice synthesis is temporarily unavailable, but here's the text response above!"
                )
        except Exception as e:
            await self.slack.post_ephemeral(channel_id, user_id, ErrorHandler.handle_voice_error(e))

    def handle_command(self, payload: Dict[str, Any]) -> Response:
        command = payload.get('command')
        logger.info(f"Handling Slack command {command} from {payload.get('user_id')}")

        if command == '/chat':
            return self._chat_command(payload)
        if command == '/personas':
            return _json({
                'response_type': 'ephemeral',
                'text': 'Available Digital Twin Personas:',
                'blocks': slack_blocks.personas_list_blocks()
            })
        if command == '/debate':
            return self._debate_command(payload)
        return _text(slack_blocks.HELP_TEXT)

    def _chat_command(self, payload: Dict[str, Any]) -> Response:
        message = (payload.get('text') or '').strip()
        context = self.conversations.get(payload.get('user_id', ''))

        if not message:
            return _json({
                'response_type': 'ephemeral',
                'text': 'Choose a persona to chat with:',
                'blocks': slack_blocks.persona_selection_blocks()
            })

        if not context.selected_persona:
            return _json({
                'response_type': 'ephemeral',
                'text': 'Please select a persona first:',
                'blocks': slack_blocks.persona_selection_blocks()
            })

        persona = get_persona(context.selected_persona)
        self.runner.spawn(
            self._chat_reply(payload.get('channel_id', ''), payload.get('user_id', ''), message),
            "Slack /chat reply"
        )
        return _text(f"💭 Thinking as {persona.name if persona else context.selected_persona}...")

    async def _chat_reply(self, channel_id: str, user_id: str, message: str) -> None:
        try:
            await self._respond_as_persona(channel_id, user_id, message)
        except Exception as e:
            await self.slack.post_message(channel_id, ErrorHandler.handle_chat_error(e))

    def _debate_command(self, payload: Dict[str, Any]) -> Response:
        topic = (payload.get('text') or '').strip()
        if not topic:
            return _text("Please provide a topic, e.g. `/debate AI ethics`")

        self.runner.spawn(self._debate_reply(payload.get('channel_id', ''), topic), "Slack /debate reply")
        return _text(f"🎭 Generating debate on \"{topic}\" between digital twin personas...")

    async def _debate_reply(self, channel_id: str, topic: str) -> None:
        try:
            debate = await self.debates.generate(topic, include_audio=self.debate_audio)
            await self.slack.post_message(channel_id, f"*🎭 Debate: {topic}*\n{debate.combined_text}")
            if debate.audio and len(debate.audio) < MAX_UPLOAD_BYTES:
                await self.slack.upload_file(
                    channel_id,
                    f"debate-{_timestamp_ms()}.mp3",
                    debate.audio,
                    f"Debate Audio: {topic}"
                )
        except Exception as e:
            await self.slack.post_message(channel_id, ErrorHandler.handle_debate_error(e, topic))
