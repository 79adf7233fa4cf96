import logging
import sys

from twin_api.routes import create_app
from twin_lib.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True
)
logger = logging.getLogger(__name__)

settings = get_settings()
app = create_app(settings)

if __name__ == "__main__":
    logger.info(f"Starting Flask server on port {settings.port}...")
    logger.info(f"Slack events endpoint: /slack (signature checks {'on /slack/webhook' if settings.slack_signing_secret else 'disabled'})")
    app.run(host='0.0.0.0', port=settings.port)
