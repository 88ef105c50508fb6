"""Tests for saving dream plans and ticking off their steps."""

import datetime

import pytest

import db_supabase
from db_utils import InMemoryDataSource
from dream_sessions import (
    complete_dream_session,
    delete_dream_session,
    dream_progress,
    get_dream_session,
    list_dream_sessions,
    save_dream_plan,
    set_step_completed,
    start_dream_session,
)

T0 = datetime.datetime(2025, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)

ROADMAP = {
    "roadmap": "Estudia ciencias y no te rindas.",
    "steps": [
        {
            "step_number": 2,
            "step_title": "Visita un planetario",
            "step_description": "Pide a tu familia que te acompañe.",
            "estimated_time": "1 día",
            "resources": ["Planetario"],
        },
        {
            "step_number": 1,
            "step_title": "Lee sobre el espacio",
            "step_description": "Un capítulo por semana.",
            "estimated_time": "3 meses",
            "resources": [],
        },
    ],
}


class SessionsDown(InMemoryDataSource):
    def create_dream_session(self, user_id, dream_title, dream_description):
        raise ConnectionError("cumplir_sueno_sessions unreachable")

    def list_dream_sessions(self, user_id):
        raise ConnectionError("cumplir_sueno_sessions unreachable")

    def update_dream_step(self, step_id, updates):
        raise ConnectionError("cumplir_sueno_steps read-only")


@pytest.fixture(params=["memory", "supabase"])
def source(request, memory_source, supabase_source):
    return memory_source if request.param == "memory" else supabase_source


class TestDreamPlan:
    def test_start_returns_session_without_steps(self, source):
        session = start_dream_session(source, "ana", "Ser astronauta", "Viajar a la luna")
        assert session["id"]
        assert session["dream_title"] == "Ser astronauta"
        assert session["steps"] == []

    def test_saved_plan_survives_a_reload(self, source):
        session = start_dream_session(source, "ana", "Ser astronauta", "")
        assert save_dream_plan(source, session["id"], ROADMAP, "https://img.example/a.png", now=T0) is True

        stored = get_dream_session(source, session["id"])
        assert stored["ai_roadmap"] == ROADMAP["roadmap"]
        assert stored["ai_generated_image_url"] == "https://img.example/a.png"
        assert stored["updated_at"] == T0.isoformat()
        assert [step["step_title"] for step in stored["steps"]] == ["Lee sobre el espacio", "Visita un planetario"]
        assert not any(step["is_completed"] for step in stored["steps"])

    def test_saving_again_replaces_steps(self, source):
        session = start_dream_session(source, "ana", "Ser astronauta", "")
        save_dream_plan(source, session["id"], ROADMAP)
        save_dream_plan(source, session["id"], {"roadmap": "Nuevo plan", "steps": ROADMAP["steps"][:1]})
        stored = get_dream_session(source, session["id"])
        assert stored["ai_roadmap"] == "Nuevo plan"
        assert len(stored["steps"]) == 1

    def test_step_completion_and_progress(self, source):
        session = start_dream_session(source, "ana", "Ser astronauta", "")
        save_dream_plan(source, session["id"], ROADMAP)
        first = get_dream_session(source, session["id"])["steps"][0]

        assert set_step_completed(source, first["id"], True, now=T0) is True
        assert dream_progress(get_dream_session(source, session["id"])) == (1, 2)

        set_step_completed(source, first["id"], False)
        assert dream_progress(get_dream_session(source, session["id"])) == (0, 2)

    def test_complete_session(self, source):
        session = start_dream_session(source, "ana", "Ser astronauta", "")
        assert complete_dream_session(source, session["id"], now=T0) is True
        assert get_dream_session(source, session["id"])["completed_at"] == T0.isoformat()

    def test_list_only_the_users_sessions_with_steps(self, source):
        mine = start_dream_session(source, "ana", "Ser astronauta", "")
        start_dream_session(source, "luis", "Ser futbolista", "")
        save_dream_plan(source, mine["id"], ROADMAP)

        sessions = list_dream_sessions(source, "ana")
        assert [s["dream_title"] for s in sessions] == ["Ser astronauta"]
        assert len(sessions[0]["steps"]) == 2

    def test_delete_removes_session_and_steps(self, source):
        session = start_dream_session(source, "ana", "Ser astronauta", "")
        save_dream_plan(source, session["id"], ROADMAP)
        assert delete_dream_session(source, session["id"]) is True
        assert get_dream_session(source, session["id"]) is None
        assert source.count_rows(db_supabase.DREAM_STEPS_TABLE) == 0

    def test_unknown_session(self, source):
        assert get_dream_session(source, "missing") is None


class TestFailures:
    def test_create_failure_gives_none(self):
        assert start_dream_session(SessionsDown(), "ana", "Ser astronauta", "") is None

    def test_list_failure_gives_empty_list(self):
        assert list_dream_sessions(SessionsDown(), "ana") == []

    def test_step_update_failure_gives_false(self):
        assert set_step_completed(SessionsDown(), "step-1", True) is False

    def test_save_failure_gives_false(self, fake_client, supabase_source):
        session = start_dream_session(supabase_source, "ana", "Ser astronauta", "")
        fake_client.failing_tables.add(db_supabase.DREAM_STEPS_TABLE)
        assert save_dream_plan(supabase_source, session["id"], ROADMAP) is False


def test_progress_of_session_without_steps():
    assert dream_progress({"steps": []}) == (0, 0)
