"""Supabase persistence helpers for Mind Goal activity records and scores."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from supabase import Client

PROFILES_TABLE = "profiles"
USER_RESPONSES_TABLE = "user_responses"
TIMELINE_NOTES_TABLE = "timeline_notes"
LETTERS_TABLE = "letters"
MEDITATION_TABLE = "meditation_sessions"
ANGER_TABLE = "anger_management_sessions"
COMMUNICATION_TABLE = "communication_sessions"
SEMAFORO_SESSIONS_TABLE = "semaforo_limites_sessions"
SEMAFORO_RESPONSES_TABLE = "semaforo_limites_responses"
PROBLEMA_SESSIONS_TABLE = "problema_resuelto_sessions"
PROBLEMA_RESPONSES_TABLE = "problema_resuelto_responses"
DULCES_TABLE = "dulces_magicos_sessions"
EMOTION_MATCHES_TABLE = "emotion_matches"
EMOTION_LOG_TABLE = "user_emotion_log"
PUBLIC_SCORES_TABLE = "public_scores"

DREAM_SESSIONS_TABLE = "cumplir_sueno_sessions"
DREAM_STEPS_TABLE = "cumplir_sueno_steps"

RECALCULATE_ALL_RPC = "recalculate_all_public_scores"
UPDATE_DASHBOARD_RPC = "update_dashboard_for_user"
DEFAULT_RESPONSE_ACTIVITY = "cuentame_quien_eres"


def _rows(response: Any) -> List[Dict[str, Any]]:
    return list(getattr(response, "data", None) or [])


def _user_rows(client: Client, table: str, user_id: str) -> List[Dict[str, Any]]:
    response = (
        client.table(table)
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return _rows(response)


def _attach_children(
    client: Client,
    sessions: List[Dict[str, Any]],
    child_table: str,
    field: str = "responses",
    order_by: str = "created_at",
) -> List[Dict[str, Any]]:
    """Load the child rows of several sessions in one query."""
    if not sessions:
        return []
    session_ids = [session["id"] for session in sessions if session.get("id")]
    by_session: Dict[str, List[Dict[str, Any]]] = {}
    if session_ids:
        response = (
            client.table(child_table)
            .select("*")
            .in_("session_id", session_ids)
            .order(order_by)
            .execute()
        )
        for row in _rows(response):
            by_session.setdefault(row.get("session_id"), []).append(row)
    return [{**session, field: by_session.get(session.get("id"), [])} for session in sessions]


def count_rows(client: Client, table: str) -> int:
    """Exact row count of a table."""
    response = client.table(table).select("id", count="exact").execute()
    count = getattr(response, "count", None)
    return int(count) if count is not None else len(_rows(response))


# ============================================================================
# Profiles (profiles)
# ============================================================================

def list_profiles(client: Client) -> List[Dict[str, Any]]:
    """All profiles, oldest first."""
    response = client.table(PROFILES_TABLE).select("*").order("created_at").execute()
    return _rows(response)


def get_profile(client: Client, user_id: str) -> Optional[Dict[str, Any]]:
    response = client.table(PROFILES_TABLE).select("*").eq("id", user_id).limit(1).execute()
    rows = _rows(response)
    return rows[0] if rows else None


# ============================================================================
# Free-text activities (user_responses, timeline_notes, letters)
# ============================================================================

def list_user_responses(
    client: Client, user_id: str, activity_type: str = DEFAULT_RESPONSE_ACTIVITY
) -> List[Dict[str, Any]]:
    """Answers to the "Cuéntame quién eres" questionnaire (or another activity)."""
    response = (
        client.table(USER_RESPONSES_TABLE)
        .select("*")
        .eq("user_id", user_id)
        .eq("activity_type", activity_type)
        .order("created_at", desc=True)
        .execute()
    )
    return _rows(response)


def list_timeline_notes(client: Client, user_id: str) -> List[Dict[str, Any]]:
    return _user_rows(client, TIMELINE_NOTES_TABLE, user_id)


def list_letters(client: Client, user_id: str) -> List[Dict[str, Any]]:
    return _user_rows(client, LETTERS_TABLE, user_id)


# ============================================================================
# Video sessions (meditation_sessions, anger_management_sessions)
# ============================================================================

def list_meditation_sessions(client: Client, user_id: str) -> List[Dict[str, Any]]:
    return _user_rows(client, MEDITATION_TABLE, user_id)


def list_anger_sessions(client: Client, user_id: str) -> List[Dict[str, Any]]:
    return _user_rows(client, ANGER_TABLE, user_id)


# ============================================================================
# Guided practice (communication, semaforo, problema resuelto, dulces magicos)
# ============================================================================

def list_communication_sessions(client: Client, user_id: str) -> List[Dict[str, Any]]:
    return _user_rows(client, COMMUNICATION_TABLE, user_id)


def list_semaforo_sessions(client: Client, user_id: str) -> List[Dict[str, Any]]:
    """Limit-setting sessions, each with its ``responses``."""
    sessions = _user_rows(client, SEMAFORO_SESSIONS_TABLE, user_id)
    return _attach_children(client, sessions, SEMAFORO_RESPONSES_TABLE)


def list_problema_sessions(client: Client, user_id: str) -> List[Dict[str, Any]]:
    """Problem-solving sessions, each with its ``responses``."""
    sessions = _user_rows(client, PROBLEMA_SESSIONS_TABLE, user_id)
    return _attach_children(client, sessions, PROBLEMA_RESPONSES_TABLE)


def list_dulces_sessions(client: Client, user_id: str) -> List[Dict[str, Any]]:
    return _user_rows(client, DULCES_TABLE, user_id)


# ============================================================================
# Emotions (emotion_matches, user_emotion_log)
# ============================================================================

def list_emotion_matches(client: Client, user_id: str) -> List[Dict[str, Any]]:
    return _user_rows(client, EMOTION_MATCHES_TABLE, user_id)


def list_emotion_logs(client: Client, user_id: str) -> List[Dict[str, Any]]:
    return _user_rows(client, EMOTION_LOG_TABLE, user_id)


# ============================================================================
# Public scores (public_scores)
# ============================================================================

def list_public_scores(client: Client) -> List[Dict[str, Any]]:
    """Every published score, highest first."""
    response = (
        client.table(PUBLIC_SCORES_TABLE)
        .select("*")
        .order("score", desc=True)
        .execute()
    )
    return _rows(response)


def get_public_score(client: Client, user_id: str) -> Optional[Dict[str, Any]]:
    response = (
        client.table(PUBLIC_SCORES_TABLE)
        .select("score, level, last_updated")
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    rows = _rows(response)
    return rows[0] if rows else None


def upsert_public_score(client: Client, row: Dict[str, Any]) -> None:
    """Insert or replace the user's row; ``user_id`` is the conflict key."""
    client.table(PUBLIC_SCORES_TABLE).upsert(row, on_conflict="user_id").execute()


def recalculate_all_public_scores(client: Client) -> None:
    """Ask the backend to rebuild every row of ``public_scores``."""
    client.rpc(RECALCULATE_ALL_RPC, {}).execute()


def update_dashboard_for_user(client: Client, user_id: str) -> None:
    """Ask the backend to rebuild one user's dashboard and public score."""
    client.rpc(UPDATE_DASHBOARD_RPC, {"p_user_id": user_id}).execute()


# ============================================================================
# Dream plans (cumplir_sueno_sessions, cumplir_sueno_steps)
# ============================================================================

def create_dream_session(
    client: Client, user_id: str, dream_title: str, dream_description: str
) -> Optional[Dict[str, Any]]:
    """Insert a new dream session and return the stored row."""
    result = client.table(DREAM_SESSIONS_TABLE).insert({
        "user_id": user_id,
        "dream_title": dream_title,
        "dream_description": dream_description,
    }).execute()
    rows = _rows(result)
    return rows[0] if rows else None


def update_dream_session(client: Client, session_id: str, updates: Dict[str, Any]) -> None:
    client.table(DREAM_SESSIONS_TABLE).update(updates).eq("id", session_id).execute()


def delete_dream_session(client: Client, session_id: str) -> None:
    client.table(DREAM_STEPS_TABLE).delete().eq("session_id", session_id).execute()
    client.table(DREAM_SESSIONS_TABLE).delete().eq("id", session_id).execute()


def replace_dream_steps(client: Client, session_id: str, steps: List[Dict[str, Any]]) -> None:
    """Drop the session's steps and insert ``steps`` in one batch."""
    client.table(DREAM_STEPS_TABLE).delete().eq("session_id", session_id).execute()
    if steps:
        client.table(DREAM_STEPS_TABLE).insert(
            [{**step, "session_id": session_id} for step in steps]
        ).execute()


def update_dream_step(client: Client, step_id: str, updates: Dict[str, Any]) -> None:
    client.table(DREAM_STEPS_TABLE).update(updates).eq("id", step_id).execute()


def get_dream_session(client: Client, session_id: str) -> Optional[Dict[str, Any]]:
    """One session with its ``steps`` ordered by step number."""
    response = client.table(DREAM_SESSIONS_TABLE).select("*").eq("id", session_id).limit(1).execute()
    sessions = _rows(response)
    if not sessions:
        return None
    return _attach_children(client, sessions, DREAM_STEPS_TABLE, field="steps", order_by="step_number")[0]


def list_dream_sessions(client: Client, user_id: str) -> List[Dict[str, Any]]:
    """The user's dream sessions, most recently updated first, with their ``steps``."""
    response = (
        client.table(DREAM_SESSIONS_TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("updated_at", desc=True)
        .execute()
    )
    return _attach_children(client, _rows(response), DREAM_STEPS_TABLE, field="steps", order_by="step_number")
