from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from core.errors import ProviderError
from core.provider import ContentProvider

logger = logging.getLogger(__name__)

PROCESSING_REPLY = "I'm processing that..."
UNAVAILABLE_REPLY = "Service unavailable."


def send_message(
    history: List[Dict[str, Any]],
    message: str,
    provider: Optional[ContentProvider] = None,
) -> str:
    """One assistant turn. `history` is a list of {"role", "parts": [{"text"}]} dicts."""
    if provider is None:
        from services.gemini_service import gemini_service
        provider = gemini_service
    try:
        reply = provider.chat(history or [], message)
    except ProviderError as e:
        logger.warning("Assistant unavailable: %s", e)
        return UNAVAILABLE_REPLY
    return reply or PROCESSING_REPLY
