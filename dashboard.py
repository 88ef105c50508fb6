"""
Dashboard statistics for Mind Goal.

Per-user activity figures (how much the child did, how much they wrote, when
they last played, what it was worth) and platform-wide totals for school staff.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

import db_supabase
from db_utils import DataSource
from leaderboard import LeaderboardEntry, load_leaderboard
from scoring import ACTIVITY_SOURCES, collect_activity, get_score_level, score_bundle

logger = logging.getLogger(__name__)

# Activity source -> table counted for the platform totals.
ACTIVITY_TABLES = {
    "responses": db_supabase.USER_RESPONSES_TABLE,
    "timeline_notes": db_supabase.TIMELINE_NOTES_TABLE,
    "letters": db_supabase.LETTERS_TABLE,
    "meditation": db_supabase.MEDITATION_TABLE,
    "anger": db_supabase.ANGER_TABLE,
    "communication": db_supabase.COMMUNICATION_TABLE,
    "semaforo": db_supabase.SEMAFORO_SESSIONS_TABLE,
    "problema": db_supabase.PROBLEMA_SESSIONS_TABLE,
    "dulces": db_supabase.DULCES_TABLE,
    "emotion_matches": db_supabase.EMOTION_MATCHES_TABLE,
    "emotion_logs": db_supabase.EMOTION_LOG_TABLE,
}

ACTIVITY_TIMESTAMPS = ("completed_at", "updated_at", "created_at")


def _text(value: Any) -> int:
    return len(value) if isinstance(value, str) else 0


def _message_chars(row: Dict[str, Any]) -> int:
    return sum(
        _text(message.get("text"))
        for message in row.get("messages") or []
        if isinstance(message, dict) and message.get("sender") == "user"
    )


# Characters the child wrote in one row of each source; choice-only games write none.
CHAR_COUNTERS: Dict[str, Callable[[Dict[str, Any]], int]] = {
    "responses": lambda row: _text(row.get("response")),
    "timeline_notes": lambda row: _text(row.get("text")),
    "letters": lambda row: _text(row.get("title")) + _text(row.get("content")),
    "meditation": lambda row: _text(row.get("reflection_text")),
    "anger": lambda row: _text(row.get("reflection_text")),
    "communication": _message_chars,
    "emotion_logs": lambda row: _text(row.get("notes")),
}


@dataclass
class ActivityStats:
    count: int = 0
    chars: int = 0
    last_activity: Optional[str] = None
    points: int = 0


@dataclass
class UserDashboard:
    user_id: str
    profile: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, ActivityStats] = field(default_factory=dict)
    failed_sources: List[str] = field(default_factory=list)

    @property
    def total_score(self) -> int:
        return sum(stat.points for stat in self.stats.values())

    @property
    def level(self) -> str:
        return get_score_level(self.total_score)


@dataclass
class PlatformStats:
    total_users: int = 0
    average_score: int = 0
    activity_totals: Dict[str, int] = field(default_factory=dict)
    failed_sources: List[str] = field(default_factory=list)


def last_activity(rows: Iterable[Dict[str, Any]]) -> Optional[str]:
    """Newest timestamp found on any row (ISO strings compare chronologically)."""
    stamps = [
        str(row[column])
        for row in rows
        for column in ACTIVITY_TIMESTAMPS
        if row.get(column)
    ]
    return max(stamps) if stamps else None


def activity_stats(name: str, rows: List[Dict[str, Any]], points: int) -> ActivityStats:
    counter = CHAR_COUNTERS.get(name)
    return ActivityStats(
        count=len(rows),
        chars=sum(counter(row) for row in rows) if counter else 0,
        last_activity=last_activity(rows),
        points=points,
    )


def get_user_dashboard(source: DataSource, user_id: str) -> UserDashboard:
    """Per-source figures for one child; failing sources count as empty."""
    bundle, failed = collect_activity(source, user_id)
    breakdown = score_bundle(bundle)
    try:
        profile = source.get_profile(user_id) or {}
    except Exception:
        logger.exception("Could not load profile for user %s", user_id)
        profile = {}
    stats = {
        name: activity_stats(name, getattr(bundle, name), breakdown.points.get(name, 0))
        for name, _ in ACTIVITY_SOURCES
    }
    return UserDashboard(user_id=user_id, profile=profile, stats=stats, failed_sources=failed)


def get_activity_statistics(source: DataSource) -> PlatformStats:
    """Totals across every child: users, average score, records per activity."""
    stats = PlatformStats()
    try:
        scores = [int(row.get("score") or 0) for row in source.list_public_scores()]
    except Exception:
        logger.exception("Could not read public scores for platform statistics")
        scores = []
    if scores:
        stats.total_users = len(scores)
        stats.average_score = round(sum(scores) / len(scores))

    for name, table in ACTIVITY_TABLES.items():
        try:
            stats.activity_totals[name] = source.count_rows(table)
        except Exception:
            logger.exception("Could not count rows of %s", table)
            stats.activity_totals[name] = 0
            stats.failed_sources.append(name)
    return stats


def get_top_users(source: DataSource, limit: int = 10) -> List[LeaderboardEntry]:
    return load_leaderboard(source).entries[:limit]


def force_update_dashboard(source: DataSource, user_id: str) -> bool:
    """Ask the backend to rebuild one child's dashboard right now."""
    try:
        source.update_dashboard_for_user(user_id)
    except Exception:
        logger.exception("Could not force a dashboard update for user %s", user_id)
        return False
    return True
