"""Saved "Cumplir mi sueño" plans: the dream, its AI roadmap and the steps the child ticks off."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from db_utils import DataSource

logger = logging.getLogger(__name__)


def _timestamp(now: Optional[datetime.datetime] = None) -> str:
    return (now or datetime.datetime.now(datetime.timezone.utc)).isoformat()


def start_dream_session(
    source: DataSource, user_id: str, dream_title: str, dream_description: str
) -> Optional[Dict[str, Any]]:
    """Create a session for a new dream. Returns it with no steps, or None on failure."""
    try:
        session = source.create_dream_session(user_id, dream_title, dream_description)
    except Exception:
        logger.exception("Could not create dream session for user %s", user_id)
        return None
    if not session:
        logger.error("Dream session insert for user %s returned no row", user_id)
        return None
    return {**session, "steps": []}


def save_dream_plan(
    source: DataSource,
    session_id: str,
    roadmap: Dict[str, Any],
    image_url: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> bool:
    """Store a generated roadmap on the session and replace its steps."""
    updates: Dict[str, Any] = {"ai_roadmap": roadmap.get("roadmap") or "", "updated_at": _timestamp(now)}
    if image_url:
        updates["ai_generated_image_url"] = image_url
    steps = [
        {
            "step_number": step.get("step_number", index),
            "step_title": step.get("step_title", ""),
            "step_description": step.get("step_description", ""),
            "estimated_time": step.get("estimated_time", ""),
            "resources": list(step.get("resources") or []),
            "is_completed": False,
        }
        for index, step in enumerate(roadmap.get("steps") or [], start=1)
    ]
    try:
        source.update_dream_session(session_id, updates)
        source.replace_dream_steps(session_id, steps)
    except Exception:
        logger.exception("Could not save dream plan for session %s", session_id)
        return False
    return True


def set_step_completed(
    source: DataSource, step_id: str, completed: bool, now: Optional[datetime.datetime] = None
) -> bool:
    try:
        source.update_dream_step(step_id, {"is_completed": bool(completed), "updated_at": _timestamp(now)})
    except Exception:
        logger.exception("Could not update dream step %s", step_id)
        return False
    return True


def complete_dream_session(
    source: DataSource, session_id: str, now: Optional[datetime.datetime] = None
) -> bool:
    stamp = _timestamp(now)
    try:
        source.update_dream_session(session_id, {"completed_at": stamp, "updated_at": stamp})
    except Exception:
        logger.exception("Could not complete dream session %s", session_id)
        return False
    return True


def delete_dream_session(source: DataSource, session_id: str) -> bool:
    try:
        source.delete_dream_session(session_id)
    except Exception:
        logger.exception("Could not delete dream session %s", session_id)
        return False
    return True


def get_dream_session(source: DataSource, session_id: str) -> Optional[Dict[str, Any]]:
    try:
        return source.get_dream_session(session_id)
    except Exception:
        logger.exception("Could not load dream session %s", session_id)
        return None


def list_dream_sessions(source: DataSource, user_id: str) -> List[Dict[str, Any]]:
    try:
        return source.list_dream_sessions(user_id)
    except Exception:
        logger.exception("Could not list dream sessions for user %s", user_id)
        return []


def dream_progress(session: Dict[str, Any]) -> Tuple[int, int]:
    """(completed steps, total steps)."""
    steps = session.get("steps") or []
    return sum(1 for step in steps if step.get("is_completed")), len(steps)
