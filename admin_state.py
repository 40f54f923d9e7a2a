# admin_state.py
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import pandas as pd

from response_store import StoreError
from study_models import SurveyResponse

logger = logging.getLogger(__name__)

EXPORT_HEADERS = ["User ID", "Prompt", "Selected Method", "Timestamp"]
LOADING, ERROR, LOADED = "loading", "error", "loaded"


@dataclass(frozen=True)
class AdminState:
    status: str = LOADING
    rows: Tuple[SurveyResponse, ...] = ()
    error: Optional[str] = None


def load_responses(store):
    """Fetches every response once; the result is either an error or the full row set."""
    try:
        rows = store.select_ordered_by_timestamp()
    except StoreError as e:
        logger.exception("Failed to load survey responses")
        return AdminState(status=ERROR, error=str(e) or "An error occurred")
    logger.info("Loaded %d survey responses", len(rows))
    return AdminState(status=LOADED, rows=tuple(rows))


def build_export_csv(rows):
    """Formats responses as CSV text. Only the prompt is quoted since it may contain commas."""
    lines = [",".join(EXPORT_HEADERS)]
    for row in rows:
        lines.append(",".join([row.user_id, f'"{row.prompt}"', str(row.selected_method), row.timestamp]))
    return "\n".join(lines)


def format_local_time(timestamp):
    parsed = pd.to_datetime(timestamp, utc=True, errors='coerce')
    if pd.isna(parsed):
        return timestamp
    # Server-local zone; the browser's zone is not visible to Streamlit
    return parsed.to_pydatetime().astimezone().strftime("%x %X")


def responses_frame(rows):
    """Display table for the admin page; the stored timestamp text is left untouched in rows."""
    return pd.DataFrame(
        [[row.user_id, row.prompt, f"Method {row.selected_method}", format_local_time(row.timestamp)] for row in rows],
        columns=EXPORT_HEADERS,
    )
