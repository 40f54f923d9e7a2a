# user_study_app.py
import logging
import os

import streamlit as st
import streamlit.components.v1 as components

import survey_state
from response_store import open_response_store
from study_config import STUDY_TITLE, configure_logging, load_settings
from study_data import is_remote_url, load_study_data
from study_models import DatasetError

logger = logging.getLogger(__name__)

# --- JAVASCRIPT ---
# The submit button sits at the bottom of a long page, so the thank-you screen would start scrolled away
JS_SCROLL_TO_TOP = """
    const main = window.parent.document.querySelector('section.main');
    if (main) { main.scrollTo(0, 0); }
    window.parent.scrollTo(0, 0);
"""

INSTRUCTIONS = (
    "Please watch each set of videos and select the one you think best matches the given prompt. "
    "Please make the selection based on image quality and semantic alignment."
)


@st.cache_data
def cached_study_data(path):
    return load_study_data(path)


# --- UI & STYLING ---
st.set_page_config(layout="wide", page_title=STUDY_TITLE)
st.markdown("""
<style>
h2 { font-size: 1.5rem !important; font-weight: 600 !important; }
div[data-testid="stVideo"] { border-radius: 0.5rem; overflow: hidden; }
div[data-testid="stButton"] > button { border-radius: 0.5rem; }
</style>
""", unsafe_allow_html=True)


# --- STATE HELPERS ---
def handle_select(dataset, prompt_index, method_id):
    st.session_state.survey = survey_state.select(st.session_state.survey, dataset, prompt_index, method_id)


def handle_submit(dataset):
    st.session_state.survey = survey_state.begin_submit(st.session_state.survey, dataset)


def render_notice(notice):
    if notice is None:
        return
    if notice.level == "error":
        st.error(notice.text)
    else:
        st.warning(notice.text)


def render_video(video):
    if is_remote_url(video.url) or os.path.exists(video.url):
        st.video(video.url)
    else:
        st.warning(f"Video not found: {video.url}")


def render_prompt(dataset, prompt_index, state):
    item = dataset[prompt_index]
    chosen = state.selections.get(prompt_index)
    # Portrait clips are narrow enough to fit four across
    per_row = 4 if all(v.orientation == "portrait" for v in item.videos) else 3
    with st.container(border=True):
        st.subheader(f"Prompt {prompt_index + 1}: {item.prompt}")
        for start in range(0, len(item.videos), per_row):
            cols = st.columns(per_row)
            for col, video in zip(cols, item.videos[start:start + per_row]):
                is_chosen = chosen == video.method
                with col:
                    render_video(video)
                    st.button(
                        "Selected" if is_chosen else "Select",
                        key=f"select_{prompt_index}_{video.method}",
                        type="primary" if is_chosen else "secondary",
                        use_container_width=True,
                        disabled=state.submitting,
                        on_click=handle_select, args=(dataset, prompt_index, video.method),
                    )


# --- Main App ---
try:
    settings = load_settings()
except ValueError as e:
    st.error(f"Invalid configuration: {e}")
    st.stop()
configure_logging(settings.log_level)

try:
    dataset = cached_study_data(settings.study_data_path)
except DatasetError as e:
    logger.error("Could not load study data: %s", e)
    st.error(f"Failed to load application data. {e}")
    st.stop()

if 'survey' not in st.session_state:
    st.session_state.survey = survey_state.new_survey_state()
    logger.info("New participant session %s", st.session_state.survey.participant_id)

state = st.session_state.survey

if state.submitted:
    st.title("Thank You!")
    st.success("Your responses have been successfully recorded. Thank you for participating in our study.")
    components.html(f"<script>{JS_SCROLL_TO_TOP}</script>", height=0)
    st.stop()

st.title(STUDY_TITLE)
st.markdown(INSTRUCTIONS)
answered, total = len(state.selections), len(dataset)
st.progress(survey_state.progress(state, dataset) / 100, text=f"{answered} of {total} prompts answered")

for prompt_index in range(total):
    render_prompt(dataset, prompt_index, state)

render_notice(state.notice)
if survey_state.is_complete(state, dataset):
    _, btn_col = st.columns([5, 1])
    with btn_col:
        st.button(
            "Submitting..." if state.submitting else "Submit Responses",
            key="submit_responses", type="primary", use_container_width=True,
            disabled=state.submitting,
            on_click=handle_submit, args=(dataset,),
        )
else:
    st.caption("Select a video for every prompt to submit your responses.")

# The insert runs after rendering so the disabled button stays on screen while it is in flight
if state.submitting:
    with st.spinner("Saving responses..."):
        st.session_state.survey = survey_state.send_responses(
            state, dataset, open_response_store(settings)
        )
    st.rerun()
