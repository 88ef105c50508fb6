"""Tests for the score formulas and the fail-soft fan-out."""

import pytest

import db_supabase
from db_utils import InMemoryDataSource
from scoring import (
    ACTIVITY_SOURCES,
    ActivityBundle,
    anger_points,
    calculate_score_breakdown,
    calculate_user_score,
    communication_points,
    dulces_points,
    emotion_log_points,
    emotion_match_points,
    get_score_level,
    letter_points,
    meditation_points,
    problema_points,
    score_bundle,
    semaforo_points,
    timed_session_points,
)

USER = "user-1"


def meditation(**overrides):
    session = {
        "user_id": USER,
        "watch_duration": 180,
        "completed_at": "2025-01-01T10:00:00Z",
        "reflection_text": None,
        "view_count": 1,
        "skip_count": 0,
    }
    session.update(overrides)
    return session


class LettersDown(InMemoryDataSource):
    def list_letters(self, user_id):
        raise ConnectionError("letters table unreachable")


class TestScoreBundle:
    def test_no_records_scores_zero(self):
        assert score_bundle(ActivityBundle()).total == 0

    def test_user_without_records_scores_zero(self, memory_source):
        assert calculate_user_score(memory_source, USER) == 0

    def test_response_plus_completed_meditation(self):
        source = InMemoryDataSource({
            db_supabase.USER_RESPONSES_TABLE: [
                {"user_id": USER, "activity_type": "cuentame_quien_eres", "response": "x" * 42},
            ],
            db_supabase.MEDITATION_TABLE: [meditation()],
        })
        assert calculate_user_score(source, USER) == 392

    def test_other_users_records_are_ignored(self):
        source = InMemoryDataSource({
            db_supabase.TIMELINE_NOTES_TABLE: [
                {"user_id": USER, "text": "abc"},
                {"user_id": "someone-else", "text": "abcdef"},
            ],
        })
        assert calculate_user_score(source, USER) == 3

    def test_breakdown_names_every_source(self):
        breakdown = score_bundle(ActivityBundle())
        assert set(breakdown.points) == {name for name, _ in ACTIVITY_SOURCES}
        assert breakdown.level == "Principiante"


class TestFailSoft:
    def test_failing_source_counts_as_zero(self):
        source = LettersDown({
            db_supabase.TIMELINE_NOTES_TABLE: [{"user_id": USER, "text": "hola mundo"}],
            db_supabase.LETTERS_TABLE: [{"user_id": USER, "title": "t", "content": "long letter"}],
            db_supabase.EMOTION_LOG_TABLE: [{"user_id": USER, "notes": ""}],
        })
        breakdown = calculate_score_breakdown(source, USER)
        assert breakdown.failed_sources == ["letters"]
        assert breakdown.points["letters"] == 0
        assert breakdown.total == 10 + 50

    def test_failing_source_does_not_raise(self):
        assert calculate_user_score(LettersDown(), USER) == 0


class TestTimedSessions:
    def test_minutes_are_floored(self):
        assert timed_session_points(meditation(watch_duration=179, completed_at=None)) == 100

    def test_reflection_and_replays(self):
        session = meditation(reflection_text="me senti tranquilo", view_count=3)
        assert timed_session_points(session) == 150 + 200 + 18 + 200

    def test_skip_penalty_beyond_allowance(self):
        assert timed_session_points(meditation(skip_count=5)) == 350
        assert timed_session_points(meditation(skip_count=8)) == 320

    def test_heavily_skipped_session_never_goes_negative(self):
        skipped = meditation(watch_duration=0, completed_at=None, skip_count=100)
        assert timed_session_points(skipped) == 0
        assert meditation_points([skipped, meditation()]) == 350

    def test_anger_sessions_count_techniques(self):
        session = meditation(techniques_applied=["respirar", "contar hasta diez"])
        assert anger_points([session]) == 350 + 100

    def test_anger_sessions_accept_selected_techniques(self):
        session = meditation(selected_techniques=["respirar"])
        assert anger_points([session]) == 400

    def test_meditation_ignores_techniques(self):
        assert meditation_points([meditation(techniques_applied=["respirar"])]) == 350

    def test_missing_counters_default_sensibly(self):
        assert timed_session_points({"watch_duration": 60}) == 50


class TestMonotonicity:
    def test_more_characters_never_lower_the_score(self):
        short = meditation(reflection_text="abc")
        longer = meditation(reflection_text="abcdef")
        assert timed_session_points(longer) >= timed_session_points(short)

    def test_completion_never_lowers_the_score(self):
        assert timed_session_points(meditation()) >= timed_session_points(meditation(completed_at=None))

    def test_view_count_never_lowers_the_score(self):
        scores = [timed_session_points(meditation(view_count=n)) for n in range(1, 6)]
        assert scores == sorted(scores)

    def test_skip_count_never_raises_the_score(self):
        scores = [timed_session_points(meditation(skip_count=n)) for n in range(0, 60)]
        assert scores == sorted(scores, reverse=True)


class TestOtherActivities:
    def test_letters_count_title_and_content(self):
        assert letter_points([{"title": "Hola", "content": "futuro yo"}]) == 13

    def test_non_text_values_are_ignored(self):
        assert letter_points([{"title": None, "content": 42}]) == 0

    def test_communication_counts_only_child_messages(self):
        session = {
            "messages": [
                {"sender": "sofia", "text": "Hola, ¿cómo estás?"},
                {"sender": "user", "text": "bien"},
                {"sender": "user", "text": "gracias"},
            ],
            "completed_at": "2025-01-01T00:00:00Z",
        }
        assert communication_points([session]) == 11 + 200

    def test_semaforo(self):
        session = {
            "completed_situations": 8,
            "completed_at": "2025-01-01T00:00:00Z",
            "responses": [{"user_choice": "verde"}, {"user_choice": "rojo"}, {"user_choice": "azul"}],
        }
        assert semaforo_points([session]) == 200 + 150 + 15 + 5

    def test_problema_uses_resilient_counter(self):
        session = {"completed_problems": 4, "completed_at": "x", "resilient_responses": 3}
        assert problema_points([session]) == 100 + 150 + 120

    def test_problema_falls_back_to_responses(self):
        session = {
            "completed_problems": 2,
            "responses": [{"is_resilient": True}, {"is_resilient": False}],
        }
        assert problema_points([session]) == 50 + 40

    def test_dulces(self):
        session = {"decision_path": ["B", "B1"], "completed_at": "x", "resilience_level": "Muy Resiliente"}
        assert dulces_points([session]) == 50 + 150 + 150

    def test_emotion_matches(self):
        matches = [
            {"emotion_name": "Alegría", "is_correct": True},
            {"emotion_name": "Alegría", "is_correct": True},
            {"emotion_name": "Tristeza", "is_correct": False},
        ]
        assert emotion_match_points(matches) == 30 + 60 + 100

    def test_emotion_logs(self):
        assert emotion_log_points([{"notes": "hola"}, {"notes": None}]) == 104


@pytest.mark.parametrize(
    "score,level",
    [
        (0, "Principiante"),
        (199, "Principiante"),
        (200, "Intermedio"),
        (499, "Intermedio"),
        (500, "Avanzado"),
        (999, "Avanzado"),
        (1000, "Experto"),
        (1999, "Experto"),
        (2000, "Maestro"),
        (25000, "Maestro"),
    ],
)
def test_score_levels(score, level):
    assert get_score_level(score) == level
