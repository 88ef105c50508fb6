import json
import logging
import re
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from app_config import DEFAULT_OPENAI_MODEL, get_config
from dream_tutor_prompt import (
    ADVICE_SYSTEM_PROMPT,
    ROADMAP_SYSTEM_PROMPT,
    build_image_prompt,
    build_roadmap_prompt,
    build_step_advice_prompt,
)

logger = logging.getLogger(__name__)

IMAGE_MODEL = "dall-e-3"
ROADMAP_ERROR_MESSAGE = "No pudimos crear tu plan en este momento. Inténtalo de nuevo más tarde."
IMAGE_ERROR_MESSAGE = "No pudimos crear la imagen de tu sueño. Inténtalo de nuevo más tarde."

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}|\[[\s\S]*\]")
_JSON_BLOCKS = {
    dict: re.compile(r"\{[\s\S]*\}"),
    list: re.compile(r"\[[\s\S]*\]"),
}


def _resolve_api_key(provided: Optional[str]) -> Optional[str]:
    """Resolve an API key from (in order) provided arg, env, Streamlit secrets."""
    if provided:
        return provided
    return get_config("OPENAI_API_KEY")


def _build_client(api_key: Optional[str]) -> Optional[OpenAI]:
    resolved = _resolve_api_key(api_key)
    if not resolved:
        logger.error("OpenAI API key not configured")
        return None
    return OpenAI(api_key=resolved)


def extract_json(text: Optional[str], expected: Optional[type] = None) -> Optional[Any]:
    """Parse a model reply as JSON.

    When the whole reply is not JSON (or not of the ``expected`` type, ``dict``
    or ``list``), the outermost {...} or [...] block of that type is parsed
    instead. Without ``expected`` whichever block opens first is used.
    """
    if not text:
        return None
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if data is not None and (expected is None or isinstance(data, expected)):
        return data
    match = _JSON_BLOCKS.get(expected, _JSON_BLOCK).search(text)
    if not match:
        return None
    try:
        return json.loads(match.group(0))
    except ValueError:
        return None


def chat_completion(
    messages: List[Dict[str, str]],
    *,
    api_key: Optional[str] = None,
    client: Optional[OpenAI] = None,
    model: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: int = 700,
) -> Optional[str]:
    """Invoke OpenAI Chat Completions; None when the call cannot be made or fails."""
    client = client or _build_client(api_key)
    if client is None:
        return None
    try:
        response = client.chat.completions.create(
            model=model or get_config("OPENAI_MODEL", DEFAULT_OPENAI_MODEL) or DEFAULT_OPENAI_MODEL,
            temperature=temperature,
            max_tokens=max_tokens,
            messages=messages,
        )
    except OpenAIError:
        logger.exception("OpenAI chat completion failed")
        return None
    if not response.choices:
        logger.error("OpenAI returned no choices")
        return None
    return response.choices[0].message.content


def _normalize_steps(steps: Any) -> List[Dict[str, Any]]:
    normalized = []
    for index, step in enumerate(steps if isinstance(steps, list) else [], start=1):
        if not isinstance(step, dict) or not step.get("step_title"):
            continue
        resources = step.get("resources") or []
        normalized.append({
            "step_number": int(step.get("step_number") or index),
            "step_title": str(step["step_title"]),
            "step_description": str(step.get("step_description") or ""),
            "estimated_time": str(step.get("estimated_time") or ""),
            "resources": [str(item) for item in resources] if isinstance(resources, list) else [],
        })
    return normalized


def generate_dream_roadmap(
    dream_title: str,
    dream_description: str,
    age: Optional[int],
    grade: Optional[str],
    *,
    api_key: Optional[str] = None,
    client: Optional[OpenAI] = None,
) -> Optional[Dict[str, Any]]:
    """Roadmap ``{"roadmap": str, "steps": [...]}`` for a dream, or None."""
    content = chat_completion(
        [
            {"role": "system", "content": ROADMAP_SYSTEM_PROMPT},
            {"role": "user", "content": build_roadmap_prompt(dream_title, dream_description, age, grade)},
        ],
        api_key=api_key,
        client=client,
        max_tokens=2000,
    )
    data = extract_json(content, dict)
    if not isinstance(data, dict) or not isinstance(data.get("roadmap"), str):
        if content is not None:
            logger.error("Could not parse roadmap JSON from OpenAI reply: %.200s", content)
        return None
    return {"roadmap": data["roadmap"], "steps": _normalize_steps(data.get("steps"))}


def generate_dream_image(
    dream_title: str,
    dream_description: str,
    age: Optional[int],
    *,
    api_key: Optional[str] = None,
    client: Optional[OpenAI] = None,
) -> Optional[Dict[str, str]]:
    """Inspirational picture of the dream: ``{"url", "description"}`` or None."""
    client = client or _build_client(api_key)
    if client is None:
        return None
    try:
        response = client.images.generate(
            model=IMAGE_MODEL,
            prompt=build_image_prompt(dream_title, dream_description, age),
            n=1,
            size="1024x1024",
            quality="standard",
            style="vivid",
        )
    except OpenAIError:
        logger.exception("OpenAI image generation failed")
        return None
    url = response.data[0].url if response.data else None
    if not url:
        logger.error("OpenAI image response carried no URL")
        return None
    return {"url": url, "description": f"Imagen inspiracional para: {dream_title}"}


def generate_step_advice(
    step_title: str,
    step_description: str,
    age: Optional[int],
    *,
    api_key: Optional[str] = None,
    client: Optional[OpenAI] = None,
) -> Optional[str]:
    return chat_completion(
        [
            {"role": "system", "content": ADVICE_SYSTEM_PROMPT},
            {"role": "user", "content": build_step_advice_prompt(step_title, step_description, age)},
        ],
        api_key=api_key,
        client=client,
        max_tokens=300,
    )
