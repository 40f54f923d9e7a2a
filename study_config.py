# study_config.py
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import streamlit as st

# --- Configuration ---
STUDY_TITLE = "3D Asset Preference Study"
STUDY_DATA_PATH = "study_data.json"
SPREADSHEET_NAME = "video-preference-study-responses"
LOCAL_STORE_PATH = "responses.jsonl"
EXPORT_FILE_NAME = "survey_responses.csv"
STORE_BACKENDS = ("gsheet", "local")
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


@dataclass(frozen=True)
class StudySettings:
    study_data_path: str = STUDY_DATA_PATH
    store_backend: str = "gsheet"
    spreadsheet_name: str = SPREADSHEET_NAME
    worksheet_name: Optional[str] = None
    local_store_path: str = LOCAL_STORE_PATH
    log_level: str = "INFO"
    service_account: Optional[Mapping[str, Any]] = None


def read_secrets():
    """Returns the Streamlit secrets as a plain dict, empty when no secrets file exists."""
    try:
        return {key: st.secrets[key] for key in st.secrets}
    except FileNotFoundError:
        return {}


def load_settings(secrets=None):
    """Builds settings from Streamlit secrets, falling back to the defaults above."""
    if secrets is None:
        secrets = read_secrets()

    backend = str(secrets.get("store_backend", "gsheet")).lower()
    if backend not in STORE_BACKENDS:
        raise ValueError(f"Unknown store_backend '{backend}', expected one of {', '.join(STORE_BACKENDS)}")

    service_account = secrets.get("gcp_service_account")
    return StudySettings(
        study_data_path=secrets.get("study_data_path", STUDY_DATA_PATH),
        store_backend=backend,
        spreadsheet_name=secrets.get("spreadsheet_name", SPREADSHEET_NAME),
        worksheet_name=secrets.get("worksheet_name"),
        local_store_path=secrets.get("local_store_path", LOCAL_STORE_PATH),
        log_level=str(secrets.get("log_level", "INFO")).upper(),
        service_account=dict(service_account) if service_account is not None else None,
    )


def configure_logging(level="INFO"):
    # basicConfig is a no-op after the first rerun, so only the level is refreshed
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
