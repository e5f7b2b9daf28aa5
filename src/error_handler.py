"""Error handling helpers for the contracts API."""
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        logger.error("Unhandled exception in contracts API: %s", exc, exc_info=True)
        return {
            "detail": "An internal error occurred while processing your request. Please try again later.",
            "error_type": type(exc).__name__,
            "context": context or {},
        }
