"""Leaderboard publishing and ranking over the ``public_scores`` table."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from db_utils import DataSource
from scoring import LEVELS, BASE_LEVEL, calculate_user_score, get_score_level

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Error al cargar el leaderboard"
UPDATE_ERROR_MESSAGE = "Error al actualizar tu puntaje"

PROFILE_DEFAULTS = {
    "nombre": "Usuario",
    "apellido": "",
    "grado": "Sin especificar",
    "avatar_url": "",
    "email": "",
}


@dataclass
class LeaderboardEntry:
    user_id: str
    score: int
    level: str
    position: int
    rank: int
    nombre: str = PROFILE_DEFAULTS["nombre"]
    apellido: str = ""
    grado: str = PROFILE_DEFAULTS["grado"]
    avatar_url: str = ""
    email: str = ""
    last_updated: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.nombre} {self.apellido}".strip()


@dataclass
class LeaderboardView:
    entries: List[LeaderboardEntry] = field(default_factory=list)
    error: Optional[str] = None
    loaded_at: Optional[datetime.datetime] = None

    def find(self, user_id: str) -> Optional[LeaderboardEntry]:
        return next((entry for entry in self.entries if entry.user_id == user_id), None)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# ============================================================================
# Publisher
# ============================================================================

def publish_score(
    source: DataSource, user_id: str, score: int, now: Optional[datetime.datetime] = None
) -> bool:
    """Upsert the user's public score row. Returns False when the write fails."""
    row = {
        "user_id": user_id,
        "score": int(score),
        "level": get_score_level(int(score)),
        "last_updated": (now or _utcnow()).isoformat(),
    }
    try:
        source.upsert_public_score(row)
    except Exception:
        logger.exception("Could not publish score for user %s", user_id)
        return False
    logger.info("Published score %d (%s) for user %s", row["score"], row["level"], user_id)
    return True


def trigger_recalculation(source: DataSource) -> bool:
    """Ask the backend to rebuild every public score in one pass."""
    try:
        source.recalculate_all_public_scores()
    except Exception:
        logger.exception("Backend recalculation of public scores failed")
        return False
    return True


# ============================================================================
# Reader
# ============================================================================

def _sort_key(row: Dict[str, Any]):
    # Highest score first; on ties the earlier publication ranks higher.
    return (-int(row.get("score") or 0), str(row.get("last_updated") or "~"), str(row.get("user_id") or ""))


def build_entries(scores: List[Dict[str, Any]], profiles: List[Dict[str, Any]]) -> List[LeaderboardEntry]:
    """Join score rows with profile display fields and assign positions."""
    by_id = {profile.get("id"): profile for profile in profiles}
    ordered = sorted(scores, key=_sort_key)
    entries: List[LeaderboardEntry] = []
    rank = 0
    previous_score: Optional[int] = None
    for index, row in enumerate(ordered, start=1):
        score = int(row.get("score") or 0)
        if score != previous_score:
            rank = index
            previous_score = score
        profile = by_id.get(row.get("user_id")) or {}
        entries.append(
            LeaderboardEntry(
                user_id=row.get("user_id"),
                score=score,
                level=row.get("level") or get_score_level(score),
                position=index,
                rank=rank,
                nombre=profile.get("nombre") or PROFILE_DEFAULTS["nombre"],
                apellido=profile.get("apellido") or "",
                grado=profile.get("grado") or PROFILE_DEFAULTS["grado"],
                avatar_url=profile.get("avatar_url") or "",
                email=profile.get("email") or "",
                last_updated=row.get("last_updated"),
            )
        )
    return entries


def load_leaderboard(source: DataSource) -> LeaderboardView:
    """Fetch every published score, join profiles and rank them."""
    try:
        scores = source.list_public_scores()
        profiles = source.list_profiles()
        entries = build_entries(scores, profiles)
    except Exception:
        logger.exception("Could not load the leaderboard")
        return LeaderboardView(error=LOAD_ERROR_MESSAGE, loaded_at=_utcnow())
    return LeaderboardView(entries=entries, loaded_at=_utcnow())


def position_of(source: DataSource, user_id: str) -> Optional[int]:
    """1 + number of users with a strictly higher score; None if unpublished."""
    view = load_leaderboard(source)
    entry = view.find(user_id)
    return entry.rank if entry else None


def get_user_public_score(source: DataSource, user_id: str) -> Optional[Dict[str, Any]]:
    try:
        row = source.get_public_score(user_id)
    except Exception:
        logger.exception("Could not fetch public score for user %s", user_id)
        return None
    if not row:
        return None
    return {"score": int(row.get("score") or 0), "level": row.get("level") or get_score_level(int(row.get("score") or 0))}


def refresh_user_score(source: DataSource, user_id: str) -> LeaderboardView:
    """Recompute the user's score, publish it, and reload the leaderboard."""
    score = calculate_user_score(source, user_id)
    published = publish_score(source, user_id, score)
    view = load_leaderboard(source)
    if not published and view.error is None:
        view.error = UPDATE_ERROR_MESSAGE
    return view


def summarize(view: LeaderboardView) -> Dict[str, Any]:
    """Totals for the dashboard header: users, average score, users per level."""
    level_counts = {BASE_LEVEL: 0, **{label: 0 for _, label in reversed(LEVELS)}}
    for entry in view.entries:
        level_counts[entry.level] = level_counts.get(entry.level, 0) + 1
    total_users = len(view.entries)
    average = round(sum(entry.score for entry in view.entries) / total_users) if total_users else 0
    return {"total_users": total_users, "average_score": average, "level_counts": level_counts}
