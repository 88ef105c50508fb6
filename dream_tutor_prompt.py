from typing import Optional

ROADMAP_SYSTEM_PROMPT = (
    "Eres un tutor de vida que ayuda a niños y adolescentes a cumplir sus sueños. "
    "Respondes siempre en JSON válido."
)

ADVICE_SYSTEM_PROMPT = (
    "Eres un tutor de vida que motiva y guía a niños y adolescentes hacia sus sueños."
)


def build_roadmap_prompt(
    dream_title: str,
    dream_description: str,
    age: Optional[int],
    grade: Optional[str],
) -> str:
    """Roadmap request for one child's dream, answered as JSON."""

    age_text = f"{age} años" if age else "edad no indicada"
    grade_text = grade or "Sin especificar"

    return f"""
INFORMACIÓN DEL ESTUDIANTE:
- Edad: {age_text}
- Grado: {grade_text}
- Sueño: {dream_title}
- Descripción: {dream_description}

Crea un camino motivador, apropiado para su edad, con pasos concretos y
recursos útiles para acercarse a este sueño.

FORMATO DE RESPUESTA (JSON):
{{
  "roadmap": "Introducción motivadora (máximo 300 palabras)",
  "steps": [
    {{
      "step_number": 1,
      "step_title": "Título del paso",
      "step_description": "Qué hacer en este paso",
      "estimated_time": "Tiempo estimado",
      "resources": ["Recurso 1", "Recurso 2"]
    }}
  ]
}}

Incluye entre 5 y 8 pasos progresivos. Responde SOLO con el JSON.
"""


def build_image_prompt(dream_title: str, dream_description: str, age: Optional[int]) -> str:
    audience = f"a {age}-year-old" if age else "a child"
    return (
        f'A vibrant, child-friendly illustration of the dream "{dream_title}". '
        f"Content: {dream_description}. "
        f"Colorful, optimistic, cartoon-like digital illustration suitable for {audience}, "
        "showing success and achievement, with no text or words in the image."
    )


def build_step_advice_prompt(step_title: str, step_description: str, age: Optional[int]) -> str:
    age_text = f"{age} años" if age else "edad escolar"
    return f"""
Como tutor de vida para un estudiante de {age_text}, da consejos para este paso:

PASO: {step_title}
DESCRIPCIÓN: {step_description}

Incluye 3-5 consejos prácticos, una frase de motivación, un posible obstáculo
con su solución y un recurso adicional. Máximo 200 palabras.
"""
