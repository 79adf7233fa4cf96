from typing import Optional
import logging

logger = logging.getLogger(__name__)

class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, user_message: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.user_message = user_message or "An error occurred. Please try again later."
        super().__init__(self.message)

class ConfigurationError(AppError):
    """Raised when the credentials a provider call needs are not configured"""

class ProviderError(AppError):
    """Raised when an upstream provider answers with a non-success status or fails in transit"""

class StorageUnavailableError(AppError):
    def __init__(self, message: str = "Storage backend not configured"):
        super().__init__(message, status_code=503)

class ErrorHandler:
    @staticmethod
    def handle_chat_error(error: Exception) -> str:
        logger.error(f"Chat error: {str(error)}", exc_info=error)
        return "Sorry, I encountered an error processing your message. Please try again."

    @staticmethod
    def handle_direct_message_error(error: Exception) -> str:
        logger.error(f"Direct message error: {str(error)}", exc_info=error)
        return "Sorry, I encountered an error processing your message. Please try again or use `/chat` command."

    @staticmethod
    def handle_voice_error(error: Exception) -> str:
        logger.error(f"Voice generation error: {str(error)}", exc_info=error)
        return "❌ Sorry, I couldn't generate the voice response right now."

    @staticmethod
    def handle_debate_error(error: Exception, topic: str) -> str:
        logger.error(f"Debate generation failed: {str(error)}", exc_info=error)
        return f"❌ Failed to generate debate for topic: {topic}"
