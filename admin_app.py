# admin_app.py
import streamlit as st

from admin_state import ERROR, LOADING, build_export_csv, load_responses, responses_frame
from response_store import open_response_store
from study_config import EXPORT_FILE_NAME, configure_logging, load_settings

st.set_page_config(layout="wide", page_title="Survey Responses")

try:
    settings = load_settings()
except ValueError as e:
    st.error(f"Invalid configuration: {e}")
    st.stop()
configure_logging(settings.log_level)

# Loaded once per session; reload the page for fresh data
if 'admin' not in st.session_state or st.session_state.admin.status == LOADING:
    with st.spinner("Loading responses..."):
        st.session_state.admin = load_responses(open_response_store(settings))

admin = st.session_state.admin

if admin.status == ERROR:
    st.error(f"Error: {admin.error}")
    st.stop()

title_col, btn_col = st.columns([4, 1])
title_col.title("Survey Responses")
with btn_col:
    st.download_button(
        "Download CSV",
        data=build_export_csv(admin.rows),
        file_name=EXPORT_FILE_NAME,
        mime="text/csv",
        key="download_csv",
        use_container_width=True,
    )

st.markdown(f"Total responses: {len(admin.rows)}")
st.dataframe(responses_frame(admin.rows), use_container_width=True, hide_index=True)
