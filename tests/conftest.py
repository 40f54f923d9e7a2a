"""
Shared fixtures: a two-prompt study, fake response stores and
secrets for running the Streamlit pages under AppTest.
"""
import json
import os
import sys
import itertools

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from response_store import StoreReadError, StoreWriteError  # noqa: E402
from study_data import parse_study_data  # noqa: E402

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

RAW_STUDY = [
    {
        "prompt": "A red chair, studio lighting",
        "videos": [
            {"method": 1, "url": "https://videos.example.org/p1/m1.mp4"},
            {"method": 2, "url": "https://videos.example.org/p1/m2.mp4"},
        ],
    },
    {
        "prompt": "A blue vase with a chipped rim",
        "videos": [
            {"method": 1, "url": "https://videos.example.org/p2/m1.mp4"},
            {"method": 2, "url": "https://videos.example.org/p2/m2.mp4"},
        ],
    },
]


class RecordingStore:
    """Collects inserted batches; can be told to fail."""

    def __init__(self, rows=None, fail_insert=False, fail_select=False):
        self.rows = list(rows or [])
        self.batches = []
        self.fail_insert = fail_insert
        self.fail_select = fail_select
        self.select_calls = 0

    def insert(self, records):
        self.batches.append(list(records))
        if self.fail_insert:
            raise StoreWriteError("network unreachable")
        self.rows.extend(records)

    def select_ordered_by_timestamp(self):
        self.select_calls += 1
        if self.fail_select:
            raise StoreReadError("permission denied")
        return sorted(self.rows, key=lambda r: r.timestamp)


@pytest.fixture
def raw_study():
    return json.loads(json.dumps(RAW_STUDY))


@pytest.fixture
def dataset(raw_study):
    return parse_study_data(raw_study)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def clock():
    """Deterministic, strictly increasing timestamps."""
    counter = itertools.count()
    return lambda: f"2024-05-01T12:00:{next(counter):02d}.000Z"


@pytest.fixture
def study_file(tmp_path, raw_study):
    path = tmp_path / "study_data.json"
    path.write_text(json.dumps(raw_study), encoding="utf-8")
    return path


@pytest.fixture
def app_secrets(tmp_path, study_file):
    return {
        "study_data_path": str(study_file),
        "store_backend": "local",
        "local_store_path": str(tmp_path / "responses.jsonl"),
        "log_level": "DEBUG",
    }
