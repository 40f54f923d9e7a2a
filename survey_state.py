# survey_state.py
"""Participant-side survey state and its transitions.

Every function here takes a ``SurveyState`` and returns a new one, so the
Streamlit page only has to keep the latest value in ``st.session_state``
and render it.
"""
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Optional

from study_models import SurveyResponse
from response_store import StoreError

logger = logging.getLogger(__name__)

INCOMPLETE_MESSAGE = "Please make selections for all prompts before submitting."
SUBMIT_FAILED_MESSAGE = "There was an error submitting your responses. Please try again."


@dataclass(frozen=True)
class Notice:
    level: str  # "warning" or "error"
    text: str


@dataclass(frozen=True)
class SurveyState:
    participant_id: str
    selections: Dict[int, int] = field(default_factory=dict)
    submitting: bool = False
    submitted: bool = False
    notice: Optional[Notice] = None


def utc_timestamp():
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix, e.g. 2024-05-01T12:00:00.123Z."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def new_survey_state(participant_id=None):
    return SurveyState(participant_id=participant_id or str(uuid.uuid4()))


def select(state, dataset, prompt_index, method_id):
    """Records method_id as the choice for prompt_index, replacing any earlier choice."""
    if not 0 <= prompt_index < len(dataset):
        raise IndexError(f"Prompt index {prompt_index} is out of range for {len(dataset)} prompts")
    if not dataset[prompt_index].has_method(method_id):
        raise ValueError(f"Prompt {prompt_index + 1} has no video for method {method_id}")
    if state.submitted:
        return state
    selections = dict(state.selections)
    selections[prompt_index] = method_id
    return replace(state, selections=selections, notice=None)


def progress(state, dataset):
    if not dataset:
        return 0.0
    return len(state.selections) / len(dataset) * 100


def is_complete(state, dataset):
    return len(state.selections) == len(dataset)


def build_responses(state, dataset, clock=utc_timestamp):
    return [
        SurveyResponse(
            user_id=state.participant_id,
            prompt=dataset[prompt_index].prompt,
            selected_method=method_id,
            timestamp=clock(),
        )
        for prompt_index, method_id in sorted(state.selections.items())
    ]


def begin_submit(state, dataset):
    if state.submitting or state.submitted:
        return state
    if not is_complete(state, dataset):
        return replace(state, notice=Notice("warning", INCOMPLETE_MESSAGE))
    return replace(state, submitting=True, notice=None)


def finish_submit(state, error=None):
    if error is not None:
        return replace(state, submitting=False, notice=Notice("error", SUBMIT_FAILED_MESSAGE))
    return replace(state, submitting=False, submitted=True, notice=None)


def send_responses(state, dataset, store, clock=utc_timestamp):
    """Performs the single batch insert for a state already marked as submitting."""
    if not state.submitting:
        return state
    records = build_responses(state, dataset, clock)
    try:
        store.insert(records)
    except StoreError as e:
        logger.exception("Error submitting responses for participant %s", state.participant_id)
        return finish_submit(state, error=e)
    logger.info("Participant %s submitted %d responses", state.participant_id, len(records))
    return finish_submit(state)


def submit(state, dataset, store, clock=utc_timestamp):
    """Validates, sends all selections as one batch and returns the resulting state."""
    pending = begin_submit(state, dataset)
    if not pending.submitting or pending is state:
        return pending
    return send_responses(pending, dataset, store, clock)
