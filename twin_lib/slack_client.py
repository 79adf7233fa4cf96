from slack_sdk.web.async_client import AsyncWebClient
from slack_sdk.errors import SlackApiError
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

class SlackClient:
    """Outbound calls to the Slack Web API.

    Every call is best effort: failures are logged and swallowed, because the
    inbound webhook has already been acknowledged by the time these run.
    """

    def __init__(self, bot_token: str, client: Optional[AsyncWebClient] = None):
        self.client = client
        if self.client is None and bot_token:
            self.client = AsyncWebClient(token=bot_token)
        if self.client is None:
            logger.warning("SLACK_BOT_TOKEN not set - will not be able to post responses")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def post_message(self, channel: str, text: str, blocks: Optional[List[Dict[str, Any]]] = None) -> None:
        """Post a message to a channel"""
        if not self.client:
            return
        try:
            kwargs: Dict[str, Any] = {"channel": channel, "text": text}
            if blocks:
                kwargs["blocks"] = blocks
            await self.client.chat_postMessage(**kwargs)
            logger.info(f"Message posted to {channel}")
        except SlackApiError as e:
            logger.error(f"Slack error posting message: {e.response.get('error')}")
        except Exception as e:
            logger.error(f"Unexpected error posting message: {str(e)}")

    async def post_ephemeral(
        self,
        channel: str,
        user: str,
        text: str,
        blocks: Optional[List[Dict[str, Any]]] = None
    ) -> None:
        """Post a message only the given user can see"""
        if not self.client:
            return
        try:
            kwargs: Dict[str, Any] = {"channel": channel, "user": user, "text": text}
            if blocks:
                kwargs["blocks"] = blocks
            await self.client.chat_postEphemeral(**kwargs)
            logger.info(f"Ephemeral message posted to {user} in {channel}")
        except SlackApiError as e:
            logger.error(f"Slack error posting ephemeral message: {e.response.get('error')}")
        except Exception as e:
            logger.error(f"Unexpected error posting ephemeral message: {str(e)}")

    async def upload_file(self, channel: str, filename: str, content: bytes, title: Optional[str] = None) -> None:
        """Upload an audio file to a channel"""
        if not self.client:
            return
        try:
            await self.client.files_upload_v2(
                channel=channel,
                file=content,
                filename=filename,
                title=title or filename
            )
            logger.info(f"Uploaded {filename} ({len(content)} bytes) to {channel}")
        except SlackApiError as e:
            logger.error(f"Slack error uploading file: {e.response.get('error')}")
        except Exception as e:
            logger.error(f"Unexpected error uploading file: {str(e)}")
