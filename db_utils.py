"""Data source seam between the scoring/leaderboard code and the backend.

The rest of the code talks to a ``DataSource``. ``get_data_source()`` picks the
implementation once: a live Supabase project when credentials are configured,
an in-memory store (demo mode) when they are not.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client, create_client

import db_supabase
from app_config import Settings, load_settings
from db_supabase import DEFAULT_RESPONSE_ACTIVITY

logger = logging.getLogger(__name__)


class DataSource(ABC):
    """Everything the score and leaderboard code reads or writes."""

    demo_mode = False

    @abstractmethod
    def list_profiles(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def list_user_responses(
        self, user_id: str, activity_type: str = DEFAULT_RESPONSE_ACTIVITY
    ) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_timeline_notes(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_letters(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_meditation_sessions(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_anger_sessions(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_communication_sessions(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_semaforo_sessions(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_problema_sessions(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_dulces_sessions(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_emotion_matches(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_emotion_logs(self, user_id: str) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def list_public_scores(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def get_public_score(self, user_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def upsert_public_score(self, row: Dict[str, Any]) -> None: ...

    @abstractmethod
    def recalculate_all_public_scores(self) -> None: ...

    @abstractmethod
    def count_rows(self, table: str) -> int: ...

    @abstractmethod
    def update_dashboard_for_user(self, user_id: str) -> None: ...

    # Dream plans
    @abstractmethod
    def create_dream_session(
        self, user_id: str, dream_title: str, dream_description: str
    ) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def update_dream_session(self, session_id: str, updates: Dict[str, Any]) -> None: ...

    @abstractmethod
    def delete_dream_session(self, session_id: str) -> None: ...

    @abstractmethod
    def replace_dream_steps(self, session_id: str, steps: List[Dict[str, Any]]) -> None: ...

    @abstractmethod
    def update_dream_step(self, step_id: str, updates: Dict[str, Any]) -> None: ...

    @abstractmethod
    def get_dream_session(self, session_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def list_dream_sessions(self, user_id: str) -> List[Dict[str, Any]]: ...


class SupabaseDataSource(DataSource):
    """Live backend: thin wrappers that inject the client into ``db_supabase``."""

    def __init__(self, client: Client):
        self.client = client

    # Profiles
    def list_profiles(self) -> List[Dict[str, Any]]:
        return db_supabase.list_profiles(self.client)

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return db_supabase.get_profile(self.client, user_id)

    # Activities
    def list_user_responses(
        self, user_id: str, activity_type: str = DEFAULT_RESPONSE_ACTIVITY
    ) -> List[Dict[str, Any]]:
        return db_supabase.list_user_responses(self.client, user_id, activity_type)

    def list_timeline_notes(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_timeline_notes(self.client, user_id)

    def list_letters(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_letters(self.client, user_id)

    def list_meditation_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_meditation_sessions(self.client, user_id)

    def list_anger_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_anger_sessions(self.client, user_id)

    def list_communication_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_communication_sessions(self.client, user_id)

    def list_semaforo_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_semaforo_sessions(self.client, user_id)

    def list_problema_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_problema_sessions(self.client, user_id)

    def list_dulces_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_dulces_sessions(self.client, user_id)

    def list_emotion_matches(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_emotion_matches(self.client, user_id)

    def list_emotion_logs(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_emotion_logs(self.client, user_id)

    # Public scores
    def list_public_scores(self) -> List[Dict[str, Any]]:
        return db_supabase.list_public_scores(self.client)

    def get_public_score(self, user_id: str) -> Optional[Dict[str, Any]]:
        return db_supabase.get_public_score(self.client, user_id)

    def upsert_public_score(self, row: Dict[str, Any]) -> None:
        db_supabase.upsert_public_score(self.client, row)

    def recalculate_all_public_scores(self) -> None:
        db_supabase.recalculate_all_public_scores(self.client)

    def count_rows(self, table: str) -> int:
        return db_supabase.count_rows(self.client, table)

    def update_dashboard_for_user(self, user_id: str) -> None:
        db_supabase.update_dashboard_for_user(self.client, user_id)

    # Dream plans
    def create_dream_session(
        self, user_id: str, dream_title: str, dream_description: str
    ) -> Optional[Dict[str, Any]]:
        return db_supabase.create_dream_session(self.client, user_id, dream_title, dream_description)

    def update_dream_session(self, session_id: str, updates: Dict[str, Any]) -> None:
        db_supabase.update_dream_session(self.client, session_id, updates)

    def delete_dream_session(self, session_id: str) -> None:
        db_supabase.delete_dream_session(self.client, session_id)

    def replace_dream_steps(self, session_id: str, steps: List[Dict[str, Any]]) -> None:
        db_supabase.replace_dream_steps(self.client, session_id, steps)

    def update_dream_step(self, step_id: str, updates: Dict[str, Any]) -> None:
        db_supabase.update_dream_step(self.client, step_id, updates)

    def get_dream_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return db_supabase.get_dream_session(self.client, session_id)

    def list_dream_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return db_supabase.list_dream_sessions(self.client, user_id)


def _newest_first(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(rows, key=lambda row: str(row.get("created_at") or ""), reverse=True)


class InMemoryDataSource(DataSource):
    """Dictionary-backed store keyed by table name.

    Used in demo mode (no Supabase credentials) and by the tests. Rows are
    copied on the way in and out so callers never share state with the store.
    """

    demo_mode = True

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }

    def add(self, table: str, row: Dict[str, Any]) -> None:
        self.tables.setdefault(table, []).append(dict(row))

    def _user_rows(self, table: str, user_id: str) -> List[Dict[str, Any]]:
        rows = [dict(row) for row in self.tables.get(table, []) if row.get("user_id") == user_id]
        return _newest_first(rows)

    def _with_responses(self, sessions: List[Dict[str, Any]], responses_table: str) -> List[Dict[str, Any]]:
        responses = sorted(self.tables.get(responses_table, []), key=lambda row: str(row.get("created_at") or ""))
        return [
            {**session, "responses": [dict(r) for r in responses if r.get("session_id") == session.get("id")]}
            for session in sessions
        ]

    def list_profiles(self) -> List[Dict[str, Any]]:
        rows = [dict(row) for row in self.tables.get(db_supabase.PROFILES_TABLE, [])]
        return sorted(rows, key=lambda row: str(row.get("created_at") or ""))

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        for row in self.tables.get(db_supabase.PROFILES_TABLE, []):
            if row.get("id") == user_id:
                return dict(row)
        return None

    def list_user_responses(
        self, user_id: str, activity_type: str = DEFAULT_RESPONSE_ACTIVITY
    ) -> List[Dict[str, Any]]:
        rows = self._user_rows(db_supabase.USER_RESPONSES_TABLE, user_id)
        return [row for row in rows if row.get("activity_type", DEFAULT_RESPONSE_ACTIVITY) == activity_type]

    def list_timeline_notes(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_rows(db_supabase.TIMELINE_NOTES_TABLE, user_id)

    def list_letters(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_rows(db_supabase.LETTERS_TABLE, user_id)

    def list_meditation_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_rows(db_supabase.MEDITATION_TABLE, user_id)

    def list_anger_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_rows(db_supabase.ANGER_TABLE, user_id)

    def list_communication_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_rows(db_supabase.COMMUNICATION_TABLE, user_id)

    def list_semaforo_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        sessions = self._user_rows(db_supabase.SEMAFORO_SESSIONS_TABLE, user_id)
        return self._with_responses(sessions, db_supabase.SEMAFORO_RESPONSES_TABLE)

    def list_problema_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        sessions = self._user_rows(db_supabase.PROBLEMA_SESSIONS_TABLE, user_id)
        return self._with_responses(sessions, db_supabase.PROBLEMA_RESPONSES_TABLE)

    def list_dulces_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_rows(db_supabase.DULCES_TABLE, user_id)

    def list_emotion_matches(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_rows(db_supabase.EMOTION_MATCHES_TABLE, user_id)

    def list_emotion_logs(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_rows(db_supabase.EMOTION_LOG_TABLE, user_id)

    def list_public_scores(self) -> List[Dict[str, Any]]:
        rows = [dict(row) for row in self.tables.get(db_supabase.PUBLIC_SCORES_TABLE, [])]
        return sorted(rows, key=lambda row: row.get("score") or 0, reverse=True)

    def get_public_score(self, user_id: str) -> Optional[Dict[str, Any]]:
        for row in self.tables.get(db_supabase.PUBLIC_SCORES_TABLE, []):
            if row.get("user_id") == user_id:
                return {key: row.get(key) for key in ("score", "level", "last_updated")}
        return None

    def upsert_public_score(self, row: Dict[str, Any]) -> None:
        table = self.tables.setdefault(db_supabase.PUBLIC_SCORES_TABLE, [])
        table[:] = [existing for existing in table if existing.get("user_id") != row.get("user_id")]
        table.append(dict(row))

    def recalculate_all_public_scores(self) -> None:
        logger.warning("Demo mode: no backend routine to recalculate public scores")

    def count_rows(self, table: str) -> int:
        return len(self.tables.get(table, []))

    def update_dashboard_for_user(self, user_id: str) -> None:
        logger.warning("Demo mode: no backend routine to update the dashboard of %s", user_id)

    # Dream plans
    def _steps_of(self, session: Dict[str, Any]) -> Dict[str, Any]:
        steps = [dict(step) for step in self.tables.get(db_supabase.DREAM_STEPS_TABLE, [])
                 if step.get("session_id") == session.get("id")]
        return {**session, "steps": sorted(steps, key=lambda step: step.get("step_number") or 0)}

    def _update_where(self, table: str, column: str, value: Any, updates: Dict[str, Any]) -> None:
        for row in self.tables.get(table, []):
            if row.get(column) == value:
                row.update(updates)

    def _delete_where(self, table: str, column: str, value: Any) -> None:
        rows = self.tables.setdefault(table, [])
        rows[:] = [row for row in rows if row.get(column) != value]

    def create_dream_session(
        self, user_id: str, dream_title: str, dream_description: str
    ) -> Optional[Dict[str, Any]]:
        now = datetime.datetime.now(datetime.timezone.utc).isoformat()
        row = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "dream_title": dream_title,
            "dream_description": dream_description,
            "ai_roadmap": None,
            "ai_generated_image_url": None,
            "completed_at": None,
            "created_at": now,
            "updated_at": now,
        }
        self.add(db_supabase.DREAM_SESSIONS_TABLE, row)
        return dict(row)

    def update_dream_session(self, session_id: str, updates: Dict[str, Any]) -> None:
        self._update_where(db_supabase.DREAM_SESSIONS_TABLE, "id", session_id, updates)

    def delete_dream_session(self, session_id: str) -> None:
        self._delete_where(db_supabase.DREAM_STEPS_TABLE, "session_id", session_id)
        self._delete_where(db_supabase.DREAM_SESSIONS_TABLE, "id", session_id)

    def replace_dream_steps(self, session_id: str, steps: List[Dict[str, Any]]) -> None:
        self._delete_where(db_supabase.DREAM_STEPS_TABLE, "session_id", session_id)
        for step in steps:
            self.add(db_supabase.DREAM_STEPS_TABLE, {"id": str(uuid.uuid4()), **step, "session_id": session_id})

    def update_dream_step(self, step_id: str, updates: Dict[str, Any]) -> None:
        self._update_where(db_supabase.DREAM_STEPS_TABLE, "id", step_id, updates)

    def get_dream_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        for row in self.tables.get(db_supabase.DREAM_SESSIONS_TABLE, []):
            if row.get("id") == session_id:
                return self._steps_of(dict(row))
        return None

    def list_dream_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        sessions = [dict(row) for row in self.tables.get(db_supabase.DREAM_SESSIONS_TABLE, [])
                    if row.get("user_id") == user_id]
        sessions.sort(key=lambda row: str(row.get("updated_at") or ""), reverse=True)
        return [self._steps_of(session) for session in sessions]


def build_data_source(settings: Settings) -> DataSource:
    """Pick the live backend when configured, the in-memory store otherwise."""
    if settings.demo_mode:
        logger.warning("Supabase not configured (SUPABASE_URL / SUPABASE_ANON_KEY); running in demo mode")
        return InMemoryDataSource()
    try:
        client = create_client(settings.supabase_url, settings.supabase_anon_key)
    except Exception:
        logger.exception("Could not create Supabase client; running in demo mode")
        return InMemoryDataSource()
    return SupabaseDataSource(client)


def build_admin_data_source(settings: Settings) -> Optional[DataSource]:
    """Service-role backend for administrative jobs, or None when not configured."""
    if not settings.supabase_url or not settings.supabase_service_role_key:
        return None
    return SupabaseDataSource(create_client(settings.supabase_url, settings.supabase_service_role_key))


@lru_cache(maxsize=1)
def get_data_source() -> DataSource:
    return build_data_source(load_settings())
