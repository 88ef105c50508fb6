"""
Score Calculator for Mind Goal.

Turns a child's activity records into one integer score. The point formula is
a pure function over an ``ActivityBundle``; ``collect_activity`` gathers that
bundle from a data source, one table at a time, and never lets a single failing
table abort the whole calculation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from db_utils import DataSource

logger = logging.getLogger(__name__)

# (bundle field, DataSource read method), in the order they are read.
ACTIVITY_SOURCES: Tuple[Tuple[str, str], ...] = (
    ("responses", "list_user_responses"),
    ("timeline_notes", "list_timeline_notes"),
    ("letters", "list_letters"),
    ("meditation", "list_meditation_sessions"),
    ("anger", "list_anger_sessions"),
    ("communication", "list_communication_sessions"),
    ("semaforo", "list_semaforo_sessions"),
    ("problema", "list_problema_sessions"),
    ("dulces", "list_dulces_sessions"),
    ("emotion_matches", "list_emotion_matches"),
    ("emotion_logs", "list_emotion_logs"),
)

# Timed video sessions (meditation, anger menu)
POINTS_PER_MINUTE = 50
COMPLETION_BONUS = 200
REPLAY_BONUS = 100
SKIP_ALLOWANCE = 5
SKIP_PENALTY = 10
TECHNIQUE_POINTS = 50

# Choice-based sessions (semaforo, problema resuelto, dulces magicos)
UNIT_POINTS = 25
SESSION_COMPLETION_BONUS = 150
SEMAFORO_CHOICE_POINTS = {"verde": 15, "amarillo": 10, "rojo": 5}
RESILIENT_CHOICE_POINTS = 40
DULCES_RESILIENCE_BONUS = {
    "Nada Resiliente": 0,
    "Poco Resiliente": 50,
    "Resiliente": 100,
    "Muy Resiliente": 150,
}

# Emotion games
MATCH_ATTEMPT_POINTS = 10
MATCH_CORRECT_POINTS = 30
MATCH_EMOTION_POINTS = 100
EMOTION_LOG_POINTS = 50

LEVELS: Tuple[Tuple[int, str], ...] = (
    (2000, "Maestro"),
    (1000, "Experto"),
    (500, "Avanzado"),
    (200, "Intermedio"),
)
BASE_LEVEL = "Principiante"


def get_score_level(score: int) -> str:
    """Level label for a score; each threshold is inclusive."""
    for threshold, label in LEVELS:
        if score >= threshold:
            return label
    return BASE_LEVEL


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _count(value: Any) -> int:
    return max(0, int(_number(value)))


def _text_len(value: Any) -> int:
    return len(value) if isinstance(value, str) else 0


@dataclass
class ActivityBundle:
    """Every activity record of one user, grouped by source."""

    responses: List[Dict[str, Any]] = field(default_factory=list)
    timeline_notes: List[Dict[str, Any]] = field(default_factory=list)
    letters: List[Dict[str, Any]] = field(default_factory=list)
    meditation: List[Dict[str, Any]] = field(default_factory=list)
    anger: List[Dict[str, Any]] = field(default_factory=list)
    communication: List[Dict[str, Any]] = field(default_factory=list)
    semaforo: List[Dict[str, Any]] = field(default_factory=list)
    problema: List[Dict[str, Any]] = field(default_factory=list)
    dulces: List[Dict[str, Any]] = field(default_factory=list)
    emotion_matches: List[Dict[str, Any]] = field(default_factory=list)
    emotion_logs: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ScoreBreakdown:
    points: Dict[str, int] = field(default_factory=dict)
    failed_sources: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.points.values())

    @property
    def level(self) -> str:
        return get_score_level(self.total)


# ----------------------------------------------------------------------------
# Per-activity formulas
# ----------------------------------------------------------------------------

def response_points(rows: Iterable[Dict[str, Any]]) -> int:
    return sum(_text_len(row.get("response")) for row in rows)


def timeline_points(rows: Iterable[Dict[str, Any]]) -> int:
    return sum(_text_len(row.get("text")) for row in rows)


def letter_points(rows: Iterable[Dict[str, Any]]) -> int:
    return sum(_text_len(row.get("title")) + _text_len(row.get("content")) for row in rows)


def timed_session_points(session: Dict[str, Any], count_techniques: bool = False) -> int:
    """Points for one watched video session.

    Meditation and anger-menu sessions share this formula; anger sessions also
    earn points for each coping technique the child picked. A session never
    contributes less than zero, however often it was skipped.
    """
    points = math.floor(max(0.0, _number(session.get("watch_duration"))) / 60) * POINTS_PER_MINUTE
    if session.get("completed_at"):
        points += COMPLETION_BONUS
    points += _text_len(session.get("reflection_text"))
    if count_techniques:
        techniques = session.get("techniques_applied") or session.get("selected_techniques") or []
        points += len(techniques) * TECHNIQUE_POINTS

    view_count = _count(session.get("view_count", 1))
    if view_count > 1:
        points += (view_count - 1) * REPLAY_BONUS

    skip_count = _count(session.get("skip_count"))
    if skip_count > SKIP_ALLOWANCE:
        points -= (skip_count - SKIP_ALLOWANCE) * SKIP_PENALTY
    return max(0, points)


def meditation_points(rows: Iterable[Dict[str, Any]]) -> int:
    return sum(timed_session_points(row) for row in rows)


def anger_points(rows: Iterable[Dict[str, Any]]) -> int:
    return sum(timed_session_points(row, count_techniques=True) for row in rows)


def communication_points(rows: Iterable[Dict[str, Any]]) -> int:
    total = 0
    for session in rows:
        for message in session.get("messages") or []:
            if isinstance(message, dict) and message.get("sender") == "user":
                total += _text_len(message.get("text"))
        if session.get("completed_at"):
            total += COMPLETION_BONUS
    return total


def semaforo_points(rows: Iterable[Dict[str, Any]]) -> int:
    total = 0
    for session in rows:
        total += _count(session.get("completed_situations")) * UNIT_POINTS
        if session.get("completed_at"):
            total += SESSION_COMPLETION_BONUS
        for response in session.get("responses") or []:
            total += SEMAFORO_CHOICE_POINTS.get(response.get("user_choice"), 0)
    return total


def problema_points(rows: Iterable[Dict[str, Any]]) -> int:
    total = 0
    for session in rows:
        total += _count(session.get("completed_problems")) * UNIT_POINTS
        if session.get("completed_at"):
            total += SESSION_COMPLETION_BONUS
        resilient = session.get("resilient_responses")
        if resilient is None:
            resilient = sum(1 for response in session.get("responses") or [] if response.get("is_resilient"))
        total += _count(resilient) * RESILIENT_CHOICE_POINTS
    return total


def dulces_points(rows: Iterable[Dict[str, Any]]) -> int:
    total = 0
    for session in rows:
        total += len(session.get("decision_path") or []) * UNIT_POINTS
        if session.get("completed_at"):
            total += SESSION_COMPLETION_BONUS
        total += DULCES_RESILIENCE_BONUS.get(session.get("resilience_level"), 0)
    return total


def emotion_match_points(rows: Iterable[Dict[str, Any]]) -> int:
    matches = list(rows)
    correct = [match for match in matches if match.get("is_correct")]
    completed = {match.get("emotion_name") for match in correct if match.get("emotion_name")}
    return (
        len(matches) * MATCH_ATTEMPT_POINTS
        + len(correct) * MATCH_CORRECT_POINTS
        + len(completed) * MATCH_EMOTION_POINTS
    )


def emotion_log_points(rows: Iterable[Dict[str, Any]]) -> int:
    return sum(EMOTION_LOG_POINTS + _text_len(row.get("notes")) for row in rows)


FORMULAS = {
    "responses": response_points,
    "timeline_notes": timeline_points,
    "letters": letter_points,
    "meditation": meditation_points,
    "anger": anger_points,
    "communication": communication_points,
    "semaforo": semaforo_points,
    "problema": problema_points,
    "dulces": dulces_points,
    "emotion_matches": emotion_match_points,
    "emotion_logs": emotion_log_points,
}


def score_bundle(bundle: ActivityBundle) -> ScoreBreakdown:
    """Apply every per-activity formula to a bundle. Pure and deterministic."""
    return ScoreBreakdown(
        points={name: formula(getattr(bundle, name)) for name, formula in FORMULAS.items()}
    )


# ----------------------------------------------------------------------------
# Fan-out over the data source
# ----------------------------------------------------------------------------

def collect_activity(source: DataSource, user_id: str) -> Tuple[ActivityBundle, List[str]]:
    """
    Read every activity table for one user.

    Args:
        source: Data source to read from
        user_id: Owner of the records

    Returns:
        The bundle and the names of the sources whose read failed (those are
        left empty so they count as zero).
    """
    bundle = ActivityBundle()
    failed: List[str] = []
    for name, method in ACTIVITY_SOURCES:
        try:
            rows = getattr(source, method)(user_id)
        except Exception:
            logger.exception("Could not read %s for user %s; counting it as zero", name, user_id)
            failed.append(name)
            continue
        setattr(bundle, name, list(rows or []))
    return bundle, failed


def calculate_score_breakdown(source: DataSource, user_id: str) -> ScoreBreakdown:
    bundle, failed = collect_activity(source, user_id)
    breakdown = score_bundle(bundle)
    breakdown.failed_sources = failed
    if failed:
        logger.warning("Partial score for user %s: %d/%d sources failed", user_id, len(failed), len(ACTIVITY_SOURCES))
    return breakdown


def calculate_user_score(source: DataSource, user_id: str) -> int:
    """Current score of a user; sources that fail to load count as zero."""
    return calculate_score_breakdown(source, user_id).total
