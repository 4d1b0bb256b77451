"""Streamlit dashboard for the Hiragana Stroke Recognizer."""
import os
import time

import streamlit as st
import pandas as pd
import requests
import plotly.express as px

CANVAS_SIZE = 450


# Configuration: prioritize Streamlit secrets, then env var, then localhost fallback
def get_backend_url():
    """Get backend URL from secrets, env var, or fallback to localhost."""
    # Try Streamlit secrets first (for Streamlit Cloud deployment)
    try:
        if hasattr(st, "secrets") and "BACKEND_URL" in st.secrets:
            return st.secrets["BACKEND_URL"].rstrip("/")
    except FileNotFoundError:
        pass
    env_url = os.getenv("BACKEND_URL")
    if env_url:
        return env_url.rstrip("/")
    # Fallback to localhost for local development
    return "http://127.0.0.1:8000"


API_BASE_URL = get_backend_url()

st.set_page_config(
    page_title="Hiragana Stroke Recognizer",
    page_icon="✍️",
    layout="wide",
)

st.title("✍️ Hiragana Stroke Recognizer")


def check_backend_health():
    """Check if backend is running (longer timeout for cloud cold starts)."""
    try:
        response = requests.get(f"{API_BASE_URL}/health", timeout=10)
        return response.status_code == 200 and response.json().get("status") == "ok"
    except requests.exceptions.RequestException:
        return False


def get_json(path: str, default):
    """GET a backend path, returning ``default`` on any failure."""
    try:
        response = requests.get(f"{API_BASE_URL}{path}", timeout=5)
        if response.status_code == 200:
            return response.json()
        return default
    except requests.exceptions.RequestException:
        return default


def to_pixel_path(start: dict, end: dict, steps: int = 8):
    """Turn unit-square end points into a pointer path on the demo canvas."""
    return [
        {
            "x": (start["x"] + (end["x"] - start["x"]) * i / steps) * CANVAS_SIZE,
            "y": (start["y"] + (end["y"] - start["y"]) * i / steps) * CANVAS_SIZE,
        }
        for i in range(steps + 1)
    ]


def teach_reference_characters(characters):
    """
    Draw each selected reference character on a demo canvas and confirm it
    through the feedback flow, so the backend learns its pattern.
    Returns (success: bool, message: str, count: int).
    """
    reference = {entry["character"]: entry for entry in get_json("/reference", [])}
    canvas_id = f"dashboard-demo-{int(time.time())}"
    taught = 0

    for character in characters:
        entry = reference.get(character)
        if entry is None:
            continue

        for stroke in entry["strokes"]:
            body = {
                "points": to_pixel_path(stroke["startPoint"], stroke["endPoint"]),
                "canvas_width": CANVAS_SIZE,
                "canvas_height": CANVAS_SIZE,
            }
            response = requests.post(f"{API_BASE_URL}/canvases/{canvas_id}/strokes", json=body, timeout=5)
            if response.status_code != 200:
                return False, f"Failed to draw {character}: {response.text}", taught

        response = requests.post(f"{API_BASE_URL}/canvases/{canvas_id}/feedback-request", timeout=5)
        if response.status_code != 200:
            return False, f"Failed to open feedback for {character}: {response.text}", taught
        session_id = response.json()["session_id"]

        response = requests.post(
            f"{API_BASE_URL}/canvases/{canvas_id}/feedback",
            json={"session_id": session_id, "character": character},
            timeout=5,
        )
        if response.status_code != 200:
            return False, f"Failed to confirm {character}: {response.text}", taught

        taught += 1
        time.sleep(0.05)

    return True, f"Taught {taught} character(s).", taught


# Sidebar
st.sidebar.header("Controls")

# Backend status indicator
backend_ok = check_backend_health()
if backend_ok:
    st.sidebar.markdown("**Backend:** :green_circle: Connected")
else:
    st.sidebar.markdown("**Backend:** :red_circle: Unreachable")
    st.warning("Backend unreachable (may be waking up or misconfigured). Refresh the page to retry.")
st.sidebar.caption(f"`{API_BASE_URL}`")

reference = get_json("/reference", []) if backend_ok else []
all_characters = [entry["character"] for entry in reference]

st.sidebar.subheader("Demo Data")
demo_characters = st.sidebar.multiselect(
    "Characters to teach",
    options=all_characters,
    default=all_characters[:5],
    help="Each character is drawn from its reference strokes and confirmed once",
)

if st.sidebar.button("Teach Selected Characters"):
    if not backend_ok:
        st.sidebar.error("Backend is offline - cannot teach characters")
    elif not demo_characters:
        st.sidebar.warning("Select at least one character")
    else:
        with st.spinner("Drawing reference characters..."):
            success, message, count = teach_reference_characters(demo_characters)
        if success:
            st.sidebar.success(message)
            st.rerun()
        else:
            st.error(message)

st.sidebar.subheader("Danger Zone")
confirm_reset = st.sidebar.checkbox("I understand this erases all learning")
if st.sidebar.button("Reset Learning Data", disabled=not confirm_reset):
    try:
        requests.post(f"{API_BASE_URL}/learning/reset", timeout=5)
        st.sidebar.success("Learning data erased.")
        st.rerun()
    except requests.exceptions.RequestException as e:
        st.sidebar.error(f"Reset failed: {e}")

if not backend_ok:
    st.markdown("""
    **Backend Unavailable**

    The backend API is currently unreachable. Start it with
    `uvicorn kana_backend.app.main:app` and refresh this page.
    """)
    st.stop()

# Main content
stats = get_json("/learning/stats", {"characters": {}})["characters"]
sessions = get_json("/learning/sessions", {"sessions": []})["sessions"]
gallery = get_json("/characters", [])

col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric("Learned Characters", len(stats))
with col2:
    st.metric("Learned Patterns", sum(s["patterns"] for s in stats.values()))
with col3:
    st.metric("Recent Sessions", len(sessions))
with col4:
    st.metric("Gallery Entries", len(gallery))

st.divider()

col_left, col_right = st.columns(2)

with col_left:
    st.subheader("Learning by Character")
    if stats:
        stats_df = pd.DataFrame(
            [{"character": c, **s} for c, s in stats.items()]
        ).sort_values("total_frequency", ascending=False)
        fig_stats = px.bar(
            stats_df,
            x="character",
            y="total_frequency",
            hover_data=["patterns"],
            title="Confirmations per Character",
        )
        fig_stats.update_layout(xaxis_title="Character", yaxis_title="Total Frequency")
        st.plotly_chart(fig_stats, use_container_width=True)
        st.dataframe(stats_df, use_container_width=True, hide_index=True)
    else:
        st.info("Nothing learned yet. Confirm a drawing or use 'Teach Selected Characters'.")

with col_right:
    st.subheader("Suggestion Accuracy")
    corrected = [s for s in sessions if s.get("correctCharacter")]
    if corrected:
        accuracy_df = pd.DataFrame(
            {
                "outcome": [
                    "accepted" if s["suggestedCharacter"] == s["correctCharacter"] else "corrected"
                    for s in corrected
                ]
            }
        )
        outcome_counts = accuracy_df["outcome"].value_counts()
        fig_outcome = px.pie(
            names=outcome_counts.index,
            values=outcome_counts.values,
            title="Confirmed Sessions",
            color=outcome_counts.index,
            color_discrete_map={"accepted": "#2ca02c", "corrected": "#d62728"},
        )
        st.plotly_chart(fig_outcome, use_container_width=True)
    else:
        st.info("No confirmed sessions yet.")

# Session table
st.subheader("Recent Sessions")
if sessions:
    sessions_df = pd.DataFrame(sessions)
    sessions_df["strokes"] = sessions_df["userStrokes"].apply(len)
    sessions_df["time"] = pd.to_datetime(sessions_df["timestamp"], unit="ms", utc=True)
    if "correctCharacter" not in sessions_df:
        sessions_df["correctCharacter"] = None
    st.dataframe(
        sessions_df[["sessionId", "suggestedCharacter", "correctCharacter", "strokes", "time"]].iloc[::-1],
        use_container_width=True,
        hide_index=True,
    )
else:
    st.info("No sessions recorded yet.")

st.divider()

# Pattern inspector
st.subheader("Pattern Inspector")
inspect_options = sorted(set(all_characters) | set(stats))
if inspect_options:
    selected = st.selectbox("Character", options=inspect_options)
    patterns = get_json(f"/learning/patterns/{selected}", {"patterns": []})["patterns"]
    if patterns:
        for index, pattern in enumerate(patterns, start=1):
            st.markdown(
                f"**Pattern {index}** · frequency `{pattern['frequency']}` · "
                f"confidence `{pattern['confidence']:.0f}`"
            )
            st.dataframe(
                pd.DataFrame(pattern["userStrokes"])[["direction", "length", "position"]],
                use_container_width=True,
            )
    else:
        st.info(f"No learned patterns for {selected}.")

st.divider()

# Gallery
st.subheader("Committed Characters")
if gallery:
    gallery_df = pd.DataFrame(gallery)
    gallery_df["created_ts_utc"] = pd.to_datetime(gallery_df["created_ts_utc"])
    st.markdown(" ".join(f"`{c}`" for c in gallery_df["character"]))
    st.dataframe(
        gallery_df[["id", "canvas_id", "character", "ocr_text", "created_ts_utc"]],
        use_container_width=True,
        hide_index=True,
    )
    if st.button("Clear Gallery"):
        try:
            requests.delete(f"{API_BASE_URL}/characters", timeout=5)
            st.rerun()
        except requests.exceptions.RequestException as e:
            st.error(f"Clear failed: {e}")
else:
    st.info("The gallery is empty.")

# Footer
st.sidebar.divider()
st.sidebar.caption("Hiragana Stroke Recognizer v0.1.0")
