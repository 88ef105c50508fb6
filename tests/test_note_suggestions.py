"""Tests for the Gemini note suggestions and their offline fallback."""

import json

import requests

import note_suggestions
from note_suggestions import DEFAULT_SUGGESTIONS, generate_note_suggestions, parse_suggestions

NOTE = {"text": "Mi cumpleaños", "emoji": "🎂", "color": "#FFE4E1", "shape": "rounded-lg", "font": "Fredoka"}


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response


def gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_missing_key_uses_defaults(monkeypatch):
    monkeypatch.setattr(note_suggestions, "get_config", lambda name, default=None: default)
    assert generate_note_suggestions("futuro") == DEFAULT_SUGGESTIONS["futuro"]


def test_successful_reply_drops_incomplete_items():
    session = FakeSession(FakeResponse(gemini_reply(json.dumps([NOTE, {"text": "sin emoji"}]))))
    suggestions = generate_note_suggestions("pasado", ["Vacaciones"], api_key="k", session=session)
    assert suggestions == [NOTE]
    url, kwargs = session.calls[0]
    assert url.endswith(":generateContent")
    assert kwargs["params"] == {"key": "k"}
    assert "Vacaciones" in kwargs["json"]["contents"][0]["parts"][0]["text"]


def test_http_error_uses_defaults():
    session = FakeSession(FakeResponse(status_code=503))
    assert generate_note_suggestions("presente", api_key="k", session=session) == DEFAULT_SUGGESTIONS["presente"]


def test_reply_without_candidates_uses_defaults():
    session = FakeSession(FakeResponse({"candidates": []}))
    assert generate_note_suggestions("pasado", api_key="k", session=session) == DEFAULT_SUGGESTIONS["pasado"]


def test_unparseable_reply_uses_defaults():
    session = FakeSession(FakeResponse(gemini_reply("Lo siento, no tengo ideas.")))
    assert generate_note_suggestions("futuro", api_key="k", session=session) == DEFAULT_SUGGESTIONS["futuro"]


def test_parse_accepts_array_inside_prose():
    assert parse_suggestions("Aquí van:\n" + json.dumps([NOTE]) + "\n¡Disfruta!") == [NOTE]


def test_defaults_are_copies():
    first = note_suggestions.default_suggestions("pasado")
    first[0]["text"] = "cambiado"
    assert note_suggestions.default_suggestions("pasado")[0]["text"] != "cambiado"


def test_parse_accepts_wrapped_suggestions():
    assert parse_suggestions(json.dumps({"suggestions": [NOTE]})) == [NOTE]


def test_parse_skips_braces_in_prose_before_array():
    assert parse_suggestions("Ideas {pasado}:\n" + json.dumps([NOTE])) == [NOTE]
