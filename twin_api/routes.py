from flask import Flask, Response, jsonify, request
from flask_sock import Sock
from pydantic import ValidationError
from supabase import create_client
from datetime import datetime
import json
import logging

from twin_api.chat import ConversationStore
from twin_api.realtime import AgentFeed
from twin_api.schemas import (
    AgentCreate,
    ConversationCreate,
    DigitalTwinCreate,
    SynthesizeRequest,
    VoiceSynthesisRequest,
)
from twin_api.services.debate import DebateGenerator
from twin_api.services.documents import MAX_DOCUMENT_BYTES, DocumentService
from twin_api.services.storage import StorageService, fallback_agents, fallback_digital_twins
from twin_api.services.voice import VoiceFallback, VoiceService
from twin_api.services.zoom import ZoomService
from twin_api.slack_handler import SlackHandler
from twin_lib.config import Settings, get_settings
from twin_lib.error_handler import AppError, ConfigurationError, StorageUnavailableError
from twin_lib.rate_limiter import RateLimiter
from twin_lib.slack_client import SlackClient
from twin_lib.tasks import BackgroundRunner

logger = logging.getLogger(__name__)

CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS, PATCH"
CORS_HEADERS = "Origin, X-Requested-With, Content-Type, Accept, Authorization, Cache-Control"
# Room for multipart framing around a document at the size limit
MAX_REQUEST_BYTES = MAX_DOCUMENT_BYTES + 64 * 1024

def _now() -> str:
    return datetime.now().isoformat()

def _validation_error(error: ValidationError):
    return jsonify({'error': 'Invalid request data', 'details': json.loads(error.json())}), 400

def _audio_response(audio: bytes, no_cache: bool = False) -> Response:
    response = Response(audio, mimetype='audio/mpeg')
    if no_cache:
        response.headers['Cache-Control'] = 'no-cache'
    return response

def _connect_storage(settings: Settings):
    if not settings.storage_configured:
        logger.warning("SUPABASE_URL or SUPABASE_KEY not set - storage reads will use fallback data")
        return None
    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client initialized successfully")
        return client
    except Exception as e:
        logger.error(f"Error initializing Supabase client: {str(e)}")
        return None

def create_app(
    settings: Settings = None,
    storage_service: StorageService = None,
    voice_service: VoiceService = None,
    slack_client: SlackClient = None,
    conversations: ConversationStore = None,
    zoom_service: ZoomService = None,
    runner=None
) -> Flask:
    settings = settings or get_settings()

    logger.info("Initializing services...")
    storage_service = storage_service or StorageService(supabase_client=_connect_storage(settings))
    voice_service = voice_service or VoiceService(
        api_key=settings.elevenlabs_api_key,
        rate_limiter=RateLimiter(delay=settings.voice_rate_limit_delay)
    )
    zoom_service = zoom_service or ZoomService(
        api_key=settings.zoom_api_key,
        api_secret=settings.zoom_api_secret,
        sdk_key=settings.zoom_sdk_key,
        sdk_secret=settings.zoom_sdk_secret,
        user_id=settings.zoom_user_id
    )
    document_service = DocumentService(storage_service)
    slack_handler = SlackHandler(
        signing_secret=settings.slack_signing_secret,
        slack_client=slack_client or SlackClient(settings.slack_bot_token),
        conversations=conversations or ConversationStore(
            max_users=settings.conversation_max_users,
            idle_timeout=settings.conversation_idle_timeout
        ),
        voice_service=voice_service,
        debate_generator=DebateGenerator(voice_service),
        runner=runner or BackgroundRunner("slack-tasks"),
        debate_audio=settings.debate_audio
    )
    agent_feed = AgentFeed(storage_service)
    logger.info("All services initialized successfully")

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = MAX_REQUEST_BYTES
    app.extensions['digital_twin'] = {
        'settings': settings,
        'storage': storage_service,
        'voice': voice_service,
        'zoom': zoom_service,
        'slack': slack_handler,
    }
    sock = Sock(app)

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        logger.error(f"Request failed: {error.message}")
        return jsonify({'error': error.message}), error.status_code

    @app.errorhandler(413)
    def handle_too_large(error):
        logger.warning(f"Rejected oversized request to {request.path}")
        return jsonify({'error': 'Document exceeds the 5MB limit'}), 413

    # CORS, skipped for Slack's server-to-server calls

    @app.before_request
    def cors_preflight():
        if request.method == 'OPTIONS' and not request.path.startswith('/slack'):
            return Response(status=200)
        return None

    @app.after_request
    def cors_headers(response: Response):
        if request.path.startswith('/slack'):
            return response

        origin = request.headers.get('Origin')
        if origin and origin in settings.origins:
            response.headers['Access-Control-Allow-Origin'] = origin
        elif origin:
            logger.info(f"CORS blocked for origin: {origin}")

        response.headers['Access-Control-Allow-Methods'] = CORS_METHODS
        response.headers['Access-Control-Allow-Headers'] = CORS_HEADERS
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        return response

    # WebSocket feed

    @sock.route('/ws')
    def agents_ws(ws):
        logger.info("New WebSocket connection established")
        ws.send(agent_feed.snapshot())
        while True:
            message = ws.receive()
            if agent_feed.apply(message):
                ws.send(agent_feed.snapshot())

    # Agents

    @app.route('/api/agents', methods=['GET'])
    def get_agents():
        logger.info(f"GET /api/agents request received from origin: {request.headers.get('Origin')}")
        try:
            agents = storage_service.get_agents()
            agents = agents if isinstance(agents, list) else []
            logger.info(f"Returning {len(agents)} agents")
            return jsonify(agents)
        except Exception as e:
            logger.error(f"Error fetching agents (serving fallback): {str(e)}")
            return jsonify(fallback_agents())

    @app.route('/api/agents', methods=['POST'])
    def create_agent():
        try:
            data = AgentCreate.model_validate(request.get_json(silent=True) or {})
        except ValidationError as e:
            return _validation_error(e)
        return jsonify(storage_service.create_agent(data.model_dump()))

    @app.route('/api/maintenance/cleanup-duplicates', methods=['POST'])
    def cleanup_duplicates():
        try:
            removed = storage_service.cleanup_duplicate_agents()
            return jsonify({
                'success': True,
                'message': f"Successfully cleaned up {removed} duplicate agents",
                'removed': removed
            })
        except Exception as e:
            logger.error(f"Error cleaning up duplicates: {str(e)}")
            return jsonify({'success': False, 'error': 'Failed to clean up duplicates'}), 500

    # Digital twins

    @app.route('/api/digital-twins', methods=['GET'])
    def get_digital_twins():
        try:
            return jsonify(storage_service.get_digital_twins())
        except StorageUnavailableError:
            return jsonify(fallback_digital_twins())
        except Exception as e:
            logger.error(f"Error fetching digital twins: {str(e)}")
            return jsonify({'error': 'Failed to fetch digital twins'}), 500

    @app.route('/api/digital-twins', methods=['POST'])
    def create_digital_twin():
        try:
            data = DigitalTwinCreate.model_validate(request.get_json(silent=True) or {})
        except ValidationError as e:
            return _validation_error(e)
        return jsonify(storage_service.create_digital_twin(data.model_dump()))

    @app.route('/api/upload-twin-document', methods=['POST'])
    def upload_twin_document():
        document = request.files.get('document')
        if not document:
            return jsonify({'error': 'No document provided'}), 400

        name = request.form.get('name')
        if not name:
            return jsonify({'error': 'Twin name is required'}), 400

        data = document.read(MAX_DOCUMENT_BYTES + 1)
        if len(data) > MAX_DOCUMENT_BYTES:
            return jsonify({'error': 'Document exceeds the 5MB limit'}), 413

        try:
            content = document_service.extract_text(document.filename, data)
            document_service.create_digital_twin(content, name)
            return jsonify({'message': 'Digital twin created successfully'})
        except Exception as e:
            logger.error(f"Error processing document: {str(e)}", exc_info=True)
            return jsonify({'error': 'Failed to process document'}), 500

    # Conversations

    @app.route('/api/conversations', methods=['GET'])
    def get_conversations():
        try:
            return jsonify(storage_service.get_conversations())
        except StorageUnavailableError:
            return jsonify([])
        except Exception as e:
            logger.error(f"Error fetching conversations: {str(e)}")
            return jsonify({'error': 'Failed to fetch conversations'}), 500

    @app.route('/api/conversations', methods=['POST'])
    def create_conversation():
        try:
            data = ConversationCreate.model_validate(request.get_json(silent=True) or {})
        except ValidationError as e:
            return _validation_error(e)
        return jsonify(storage_service.create_conversation(data.model_dump()))

    @app.route('/api/conversations/<conversation_id>', methods=['GET'])
    def get_conversation(conversation_id):
        try:
            conversation_id = int(conversation_id)
        except ValueError:
            return jsonify({'error': 'Invalid conversation ID'}), 400

        try:
            conversation = storage_service.get_conversation(conversation_id)
        except StorageUnavailableError:
            conversation = None
        except Exception as e:
            logger.error(f"Error fetching conversation {conversation_id}: {str(e)}")
            return jsonify({'error': 'Failed to fetch conversation'}), 500

        if not conversation:
            return jsonify({'error': 'Conversation not found'}), 404
        return jsonify(conversation)

    @app.route('/api/conversations/participant/<name>', methods=['GET'])
    def get_conversations_by_participant(name):
        try:
            return jsonify(storage_service.get_conversations_by_participant(name))
        except StorageUnavailableError:
            return jsonify([])
        except Exception as e:
            logger.error(f"Error fetching conversations for {name}: {str(e)}")
            return jsonify({'error': 'Failed to fetch conversations'}), 500

    # Voice

    @app.route('/api/synthesize', methods=['POST'])
    async def synthesize():
        body = request.get_json(silent=True) or {}
        try:
            data = SynthesizeRequest.model_validate(body)
        except ValidationError as e:
            return _validation_error(e)

        try:
            result = await voice_service.synthesize(data.text, persona=data.persona, voice_id=data.voiceId)
            if isinstance(result, VoiceFallback):
                return jsonify(result.to_dict())
            return _audio_response(result.audio)
        except Exception as e:
            logger.error(f"Synthesize failed: {str(e)}")
            return jsonify({
                'error': str(e),
                'fallback': True,
                'text': body.get('text'),
                'persona': body.get('persona')
            }), 500

    @app.route('/api/voice/synthesize', methods=['POST'])
    async def voice_synthesize():
        try:
            data = VoiceSynthesisRequest.model_validate(request.get_json(silent=True) or {})
        except ValidationError as e:
            return _validation_error(e)

        logger.info(f"Voice synthesis request: \"{data.text[:30]}...\" with persona: {data.persona or 'default'}")
        try:
            result = await voice_service.synthesize(data.text, persona=data.persona)
            if isinstance(result, VoiceFallback):
                logger.info("Sending fallback response to client")
                return jsonify(result.to_dict())

            logger.info(f"Sending audio response to client: {len(result.audio)} bytes")
            return _audio_response(result.audio, no_cache=True)
        except Exception as e:
            logger.error(f"Speech synthesis error: {str(e)}")
            return jsonify({'error': 'Failed to synthesize speech'}), 500

    @app.route('/api/test-voice', methods=['POST'])
    async def test_voice():
        body = request.get_json(silent=True) or {}
        persona = body.get('persona')
        text = body.get('text')
        if not persona or not text:
            return jsonify({'error': 'Persona and text are required'}), 400

        logger.info(f"Testing voice for persona: {persona}")
        try:
            result = await voice_service.synthesize(text, persona=persona)
            if isinstance(result, VoiceFallback):
                return jsonify({
                    'message': 'Using fallback voice synthesis',
                    'fallback': True,
                    'text': result.text,
                    'persona': result.persona
                })
            return _audio_response(result.audio)
        except Exception as e:
            logger.error(f"Error testing voice: {str(e)}")
            return jsonify({'error': str(e)}), 500

    @app.route('/api/voices', methods=['GET'])
    async def get_voices():
        return jsonify(await voice_service.get_voices())

    @app.route('/api/voices/all', methods=['GET'])
    async def get_all_voices():
        return jsonify(await voice_service.get_all_voices())

    # Health

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({
            'status': 'ok',
            'timestamp': _now(),
            'origin': request.headers.get('Origin'),
            'cors': 'enabled'
        })

    @app.route('/api/cors-test', methods=['GET'])
    def cors_test():
        logger.info(f"CORS test request from origin: {request.headers.get('Origin')}")
        return jsonify({
            'message': 'CORS is working!',
            'origin': request.headers.get('Origin'),
            'timestamp': _now()
        })

    # Zoom

    @app.route('/api/zoom/signature', methods=['POST'])
    def zoom_signature():
        body = request.get_json(silent=True) or {}
        meeting_number = body.get('meetingNumber')
        role = body.get('role', 0)

        if not meeting_number:
            return jsonify({
                'error': 'Meeting number is required',
                'message': 'Please provide a meeting number to generate a signature'
            }), 400

        try:
            signature = zoom_service.generate_sdk_signature(str(meeting_number), role)
        except ConfigurationError as e:
            return jsonify({
                'error': e.message,
                'message': 'Please set ZOOM_SDK_KEY and ZOOM_SDK_SECRET in your .env file.'
            }), 500
        except Exception as e:
            logger.error(f"Error generating Zoom signature: {str(e)}")
            return jsonify({
                'error': str(e) or 'Failed to generate signature',
                'message': 'Failed to generate signature. Check server logs for details.'
            }), 500

        return jsonify({'signature': signature, 'meetingNumber': meeting_number, 'role': role})

    @app.route('/api/zoom/create-meeting', methods=['POST'])
    async def zoom_create_meeting():
        body = request.get_json(silent=True) or {}
        topic = body.get('topic')
        if not topic:
            return jsonify({'error': 'Topic is required', 'message': 'Please provide a meeting topic'}), 400

        try:
            meeting = await zoom_service.create_meeting(topic, body.get('startTime'))
            return jsonify(meeting)
        except ConfigurationError as e:
            return jsonify({
                'error': e.message,
                'message': 'Please set ZOOM_API_KEY, ZOOM_API_SECRET, and ZOOM_USER_ID in your .env file.'
            }), 500
        except Exception as e:
            logger.error(f"Error creating Zoom meeting: {str(e)}")
            return jsonify({
                'error': str(e) or 'Failed to create meeting',
                'message': str(e) or 'Failed to create meeting. Check server logs for details.'
            }), 500

    register_slack_routes(app, slack_handler, settings)
    return app

def register_slack_routes(app: Flask, slack_handler: SlackHandler, settings: Settings) -> None:
    # Always registered: Slack must be able to verify the URL before any secret is set
    @app.route('/slack', methods=['POST'])
    def slack_events():
        return slack_handler.handle_events(request.get_json(silent=True) or {})

    @app.route('/slack/health', methods=['GET'])
    def slack_health():
        logger.info("Slack health check endpoint called")
        return jsonify({
            'status': 'healthy',
            'slackIntegration': 'active',
            'timestamp': _now(),
            'botToken': 'configured' if settings.slack_bot_token else 'missing',
            'signingSecret': 'configured' if settings.slack_signing_secret else 'missing'
        })

    if not settings.slack_signing_secret:
        logger.warning("SLACK_SIGNING_SECRET not set - advanced Slack routes (/slack/webhook) disabled")
        return

    @app.route('/slack/webhook', methods=['POST'])
    def slack_webhook():
        return slack_handler.handle_webhook(
            raw_body=request.get_data(as_text=True),
            timestamp=request.headers.get('X-Slack-Request-Timestamp'),
            signature=request.headers.get('X-Slack-Signature'),
            content_type=request.content_type
        )

    logger.info("Slack routes registered at /slack/webhook")
