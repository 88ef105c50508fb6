import logging
from typing import Any, Dict, Optional

import streamlit as st

from app_config import configure_logging, load_settings
from dashboard import force_update_dashboard, get_activity_statistics, get_user_dashboard
from db_utils import DataSource, get_data_source
from dream_sessions import (
    complete_dream_session,
    delete_dream_session,
    dream_progress,
    list_dream_sessions,
    save_dream_plan,
    set_step_completed,
    start_dream_session,
)
from dream_tutor_api import (
    IMAGE_ERROR_MESSAGE,
    ROADMAP_ERROR_MESSAGE,
    generate_dream_image,
    generate_dream_roadmap,
)
from leaderboard import UPDATE_ERROR_MESSAGE, LeaderboardView, load_leaderboard, refresh_user_score, summarize

APP_NAME = "Mind Goal"
NAV_TABS = ("Leaderboard", "Mi puntaje", "Cumplir mi sueño")
PODIUM_ICONS = {1: "👑", 2: "🥈", 3: "🥉"}
LEVEL_ICONS = {
    "Maestro": "🟣",
    "Experto": "🔵",
    "Avanzado": "🟢",
    "Intermedio": "🟡",
    "Principiante": "⚪",
}
SOURCE_LABELS = {
    "responses": "Cuéntame quién eres",
    "timeline_notes": "Línea del tiempo",
    "letters": "Carta a mí mismo",
    "meditation": "Meditación",
    "anger": "Menú de la ira",
    "communication": "La comunicación",
    "semaforo": "Semáforo de límites",
    "problema": "Problema resuelto",
    "dulces": "Dulces mágicos",
    "emotion_matches": "Nombra tus emociones",
    "emotion_logs": "Calculadora de emociones",
}

logger = logging.getLogger(__name__)


@st.cache_resource(show_spinner=False)
def get_source() -> DataSource:
    return get_data_source()


def current_user_id() -> Optional[str]:
    user_id = st.query_params.get("user") or st.session_state.get("user_id")
    if isinstance(user_id, list):
        user_id = user_id[0] if user_id else None
    return user_id or None


def render_leaderboard(view: LeaderboardView, user_id: Optional[str]) -> None:
    if view.error:
        st.error(view.error)
    if not view.entries:
        st.info("Aún no hay puntajes publicados.")
        return

    stats = summarize(view)
    col1, col2, col3 = st.columns(3)
    col1.metric("Estudiantes", stats["total_users"])
    col2.metric("Puntaje promedio", f"{stats['average_score']:,}")
    col3.metric("Maestros", stats["level_counts"].get("Maestro", 0))

    for entry in view.entries:
        with st.container(border=True):
            c1, c2, c3, c4 = st.columns([0.6, 3, 1.5, 1.5])
            c1.markdown(f"### {PODIUM_ICONS.get(entry.rank, f'#{entry.rank}')}")
            you = " (tú)" if entry.user_id == user_id else ""
            c2.markdown(f"**{entry.display_name}{you}**  \n{entry.grado}")
            c3.metric("Puntaje", f"{entry.score:,}")
            c4.markdown(f"{LEVEL_ICONS.get(entry.level, '⚪')} **{entry.level}**")

    if view.loaded_at:
        st.caption(f"Actualizado: {view.loaded_at:%Y-%m-%d %H:%M:%S} UTC")


def render_leaderboard_tab(source: DataSource, user_id: Optional[str]) -> None:
    st.subheader("🏆 Ranking de estudiantes")
    if user_id and st.button("🔄 Actualizar mi puntaje", type="primary"):
        with st.spinner("Calculando tu puntaje…"):
            view = refresh_user_score(source, user_id)
    else:
        view = load_leaderboard(source)

    entry = view.find(user_id) if user_id else None
    if entry:
        st.success(f"Tu posición: #{entry.rank} con {entry.score:,} puntos ({entry.level})")
    render_leaderboard(view, user_id)

    with st.expander("📊 Estadísticas de la plataforma"):
        render_platform_stats(source)


def render_score_tab(source: DataSource, user_id: Optional[str]) -> None:
    st.subheader("⭐ Mi puntaje")
    if not user_id:
        st.info("Inicia sesión para ver tu puntaje.")
        return
    board = get_user_dashboard(source, user_id)
    col1, col2 = st.columns(2)
    col1.metric("Puntaje total", f"{board.total_score:,}")
    col2.metric("Nivel", f"{LEVEL_ICONS.get(board.level, '⚪')} {board.level}")
    if board.failed_sources:
        missing = ", ".join(SOURCE_LABELS.get(name, name) for name in board.failed_sources)
        st.warning(f"Algunas actividades no se pudieron cargar: {missing}")
    rows = [
        {
            "Actividad": SOURCE_LABELS.get(name, name),
            "Registros": stat.count,
            "Caracteres": stat.chars,
            "Última actividad": (stat.last_activity or "")[:10],
            "Puntos": stat.points,
        }
        for name, stat in board.stats.items()
    ]
    st.dataframe(rows, hide_index=True, use_container_width=True)

    if st.button("🔄 Sincronizar mi panel"):
        if force_update_dashboard(source, user_id):
            st.success("Panel actualizado.")
        else:
            st.error(UPDATE_ERROR_MESSAGE)


def render_platform_stats(source: DataSource) -> None:
    stats = get_activity_statistics(source)
    col1, col2 = st.columns(2)
    col1.metric("Estudiantes con puntaje", stats.total_users)
    col2.metric("Puntaje promedio", f"{stats.average_score:,}")
    rows = [
        {"Actividad": SOURCE_LABELS.get(name, name), "Registros": total}
        for name, total in stats.activity_totals.items()
    ]
    st.dataframe(rows, hide_index=True, use_container_width=True)
    if stats.failed_sources:
        st.caption("Sin datos: " + ", ".join(SOURCE_LABELS.get(n, n) for n in stats.failed_sources))


def render_dream_plan(session: Dict[str, Any]) -> None:
    if session.get("ai_roadmap"):
        st.markdown(session["ai_roadmap"])
    if session.get("ai_generated_image_url"):
        st.image(session["ai_generated_image_url"], caption=f"Imagen inspiracional para: {session['dream_title']}")


def render_saved_dreams(source: DataSource, user_id: str) -> None:
    sessions = list_dream_sessions(source, user_id)
    if not sessions:
        return
    st.markdown("#### 📒 Mis sueños guardados")
    for session in sessions:
        done, total = dream_progress(session)
        badge = " ✅" if session.get("completed_at") else ""
        with st.expander(f"{session['dream_title']} ({done}/{total}){badge}"):
            render_dream_plan(session)
            for step in session.get("steps") or []:
                completed = bool(step.get("is_completed"))
                label = f"Paso {step['step_number']}: {step['step_title']}"
                checked = st.checkbox(label, value=completed, key=f"step-{step['id']}")
                if checked != completed:
                    set_step_completed(source, step["id"], checked)
                if step.get("step_description"):
                    st.caption(step["step_description"])
            if total and not session.get("completed_at"):
                st.progress(done / total)
            c1, c2 = st.columns(2)
            if not session.get("completed_at") and c1.button("🎉 ¡Lo logré!", key=f"done-{session['id']}"):
                complete_dream_session(source, session["id"])
                st.rerun()
            if c2.button("🗑️ Eliminar", key=f"delete-{session['id']}"):
                delete_dream_session(source, session["id"])
                st.rerun()


def render_dream_tab(source: DataSource, user_id: Optional[str]) -> None:
    st.subheader("🌠 Cumplir mi sueño")
    profile = None
    if user_id:
        try:
            profile = source.get_profile(user_id)
        except Exception:
            logger.exception("Could not load profile for %s", user_id)
    profile = profile or {}

    with st.form("dream_form"):
        title = st.text_input("¿Cuál es tu sueño?")
        description = st.text_area("Cuéntanos más sobre tu sueño")
        with_image = st.checkbox("Crear una imagen de mi sueño")
        submitted = st.form_submit_button("✨ Crear mi plan")

    if submitted:
        if not title.strip():
            st.warning("Escribe tu sueño antes de continuar.")
        else:
            create_dream_plan(source, user_id, profile, title, description, with_image)

    if user_id:
        render_saved_dreams(source, user_id)


def create_dream_plan(
    source: DataSource,
    user_id: Optional[str],
    profile: Dict[str, Any],
    title: str,
    description: str,
    with_image: bool,
) -> None:
    session = start_dream_session(source, user_id, title, description) if user_id else None
    age = profile.get("edad")
    with st.spinner("Creando tu plan…"):
        roadmap = generate_dream_roadmap(title, description, age, profile.get("grado"))
    if roadmap is None:
        st.error(ROADMAP_ERROR_MESSAGE)
        return

    image = None
    if with_image:
        with st.spinner("Dibujando tu sueño…"):
            image = generate_dream_image(title, description, age)
        if image is None:
            st.error(IMAGE_ERROR_MESSAGE)

    image_url = image["url"] if image else None
    if session and save_dream_plan(source, session["id"], roadmap, image_url):
        st.success("¡Tu plan quedó guardado! Encuéntralo abajo en tus sueños guardados.")
        return

    # Not saved (no user or backend failure): show the plan once.
    render_dream_plan({"dream_title": title, "ai_roadmap": roadmap["roadmap"], "ai_generated_image_url": image_url})
    for step in roadmap["steps"]:
        with st.expander(f"Paso {step['step_number']}: {step['step_title']}"):
            st.write(step["step_description"])
            if step["estimated_time"]:
                st.caption(f"⏱️ {step['estimated_time']}")
            for resource in step["resources"]:
                st.markdown(f"- {resource}")


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    st.set_page_config(page_title=APP_NAME, page_icon="🏆", layout="wide")
    st.title(f"🏆 {APP_NAME}")

    source = get_source()
    if source.demo_mode:
        st.warning("Modo demostración: Supabase no está configurado, los datos no se guardan.")

    user_id = current_user_id()
    leaderboard_tab, score_tab, dream_tab = st.tabs(NAV_TABS)
    with leaderboard_tab:
        render_leaderboard_tab(source, user_id)
    with score_tab:
        render_score_tab(source, user_id)
    with dream_tab:
        render_dream_tab(source, user_id)


if __name__ == "__main__":
    main()
