"""Timeline note suggestions generated with the Gemini REST API."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import requests

from app_config import get_config
from dream_tutor_api import extract_json

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
REQUEST_TIMEOUT = 30
SUGGESTION_FIELDS = ("text", "emoji", "color", "shape", "font")

SECTION_TOPICS = {
    "pasado": "recuerdos como el primer día de escuela, cumpleaños, vacaciones o aprender algo nuevo",
    "presente": "actividades actuales como estudios, deportes, pasatiempos, amigos o familia",
    "futuro": "sueños y metas como profesiones, lugares por visitar o logros por alcanzar",
}

DEFAULT_SUGGESTIONS: Dict[str, List[Dict[str, str]]] = {
    "pasado": [
        {"text": "Mi primer día de escuela", "emoji": "🎒", "color": "#FFE4E1", "shape": "rounded-lg", "font": "Fredoka"},
        {"text": "Aprendí a andar en bicicleta", "emoji": "🚲", "color": "#FFEAA7", "shape": "rounded-full", "font": "Comic Neue"},
        {"text": "Vacaciones en la playa", "emoji": "🏖️", "color": "#87CEEB", "shape": "rounded-3xl", "font": "Bubblegum Sans"},
    ],
    "presente": [
        {"text": "Estoy en quinto grado", "emoji": "📚", "color": "#98FB98", "shape": "rounded-lg", "font": "Comic Neue"},
        {"text": "Me gusta jugar fútbol", "emoji": "⚽", "color": "#DDA0DD", "shape": "rounded-full", "font": "Fredoka"},
        {"text": "Aprendo programación", "emoji": "💻", "color": "#FFB3BA", "shape": "rounded-3xl", "font": "Bubblegum Sans"},
    ],
    "futuro": [
        {"text": "Quiero ser astronauta", "emoji": "🚀", "color": "#87CEEB", "shape": "rounded-3xl", "font": "Bubblegum Sans"},
        {"text": "Viajar por el mundo", "emoji": "🌍", "color": "#98FB98", "shape": "rounded-full", "font": "Fredoka"},
        {"text": "Tener una mascota", "emoji": "🐕", "color": "#FFEAA7", "shape": "rounded-lg", "font": "Comic Neue"},
    ],
}


def default_suggestions(section: str) -> List[Dict[str, str]]:
    return [dict(item) for item in DEFAULT_SUGGESTIONS.get(section, [])]


def build_prompt(section: str, existing_notes: List[str]) -> str:
    avoid = f"\nNotas existentes que no debes repetir: {', '.join(existing_notes)}" if existing_notes else ""
    return f"""Genera 3 sugerencias de notas para la línea del tiempo de un niño de 10 años,
sección "{section}", sobre {SECTION_TOPICS.get(section, 'su vida')}.{avoid}

Responde EXACTAMENTE con este formato JSON:
[
  {{
    "text": "texto de la nota (máximo 50 caracteres)",
    "emoji": "emoji apropiado",
    "color": "color hex como #FFE4E1",
    "shape": "rounded-lg, rounded-full o rounded-3xl",
    "font": "Fredoka, Comic Neue o Bubblegum Sans"
  }}
]

Las notas deben ser positivas y apropiadas para niños."""


def parse_suggestions(text: Optional[str]) -> List[Dict[str, str]]:
    """Suggestions found in a model reply; entries missing a field are dropped."""
    data = extract_json(text, list)
    if not isinstance(data, list):
        return []
    return [
        {key: str(item[key]) for key in SUGGESTION_FIELDS}
        for item in data
        if isinstance(item, dict) and all(item.get(key) for key in SUGGESTION_FIELDS)
    ]


def generate_note_suggestions(
    section: str,
    existing_notes: Optional[List[str]] = None,
    *,
    api_key: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> List[Dict[str, str]]:
    """Ask Gemini for note ideas; the built-in suggestions are used on any failure."""
    api_key = api_key or get_config("GEMINI_API_KEY")
    if not api_key:
        logger.warning("Gemini API key not configured; using default suggestions")
        return default_suggestions(section)

    model = get_config("GEMINI_MODEL", DEFAULT_GEMINI_MODEL) or DEFAULT_GEMINI_MODEL
    payload = {
        "contents": [{"parts": [{"text": build_prompt(section, existing_notes or [])}]}],
        "generationConfig": {"temperature": 0.8, "topK": 40, "topP": 0.95, "maxOutputTokens": 1024},
    }
    http = session or requests
    try:
        response = http.post(
            GEMINI_ENDPOINT.format(model=model),
            params={"key": api_key},
            json=payload,
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError):
        logger.exception("Gemini suggestion request failed")
        return default_suggestions(section)

    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        logger.error("Gemini reply had no text candidate")
        return default_suggestions(section)

    suggestions = parse_suggestions(text)
    return suggestions or default_suggestions(section)
