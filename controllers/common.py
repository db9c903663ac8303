"""Shared helpers for controllers."""

from __future__ import annotations

import re
from typing import Any, Dict

from fastapi import HTTPException, Request

from models.analysis_record import ImageAnalysisRecord
from models.errors import ValidationError
from services.analysis_lifecycle import AnalysisLifecycleManager
from services.conversation_manager import ConversationSessionManager

_PERIOD_RE = re.compile(r"^\s*(\d+)\s*d?\s*$", re.IGNORECASE)


def get_lifecycle(request: Request) -> AnalysisLifecycleManager:
    """Retrieve the shared lifecycle manager from the app state."""
    lifecycle = getattr(request.app.state, "lifecycle", None)
    if lifecycle is None:
        raise HTTPException(status_code=500, detail="Analysis service not initialized.")
    return lifecycle


def get_conversations(request: Request) -> ConversationSessionManager:
    """Retrieve the shared conversation manager from the app state."""
    conversations = getattr(request.app.state, "conversations", None)
    if conversations is None:
        raise HTTPException(status_code=500, detail="Chat service not initialized.")
    return conversations


def parse_period(period: str) -> int:
    """Parse a period such as `30d` (or `30`) into a number of days."""
    match = _PERIOD_RE.match(period or "")
    if not match or int(match.group(1)) < 1:
        raise ValidationError(f"Invalid period '{period}'. Use a number of days such as '30d'.")
    return int(match.group(1))


def serialize_analysis(record: ImageAnalysisRecord) -> Dict[str, Any]:
    """Public view of a record; the on-disk path stays server-side."""
    data = record.to_dict()
    data["original_image"].pop("path", None)
    return data
