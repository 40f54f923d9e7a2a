"""
Response store backends: Google Sheets (mocked worksheet) and JSON lines.
"""
import json
from unittest.mock import MagicMock

import gspread
import pytest

from response_store import (
    LocalResponseStore, SheetResponseStore, StoreConnectionError, StoreReadError,
    StoreWriteError, connect_to_gsheet, ensure_header, open_response_store,
)
from study_config import StudySettings
from study_models import RESPONSE_FIELDS, SurveyResponse


def make_records(*timestamps, user_id="u-1"):
    return [
        SurveyResponse(user_id=user_id, prompt=f"Prompt, number {i}", selected_method=i + 1, timestamp=ts)
        for i, ts in enumerate(timestamps)
    ]


class SheetDouble:
    """List-backed worksheet. Row 1 reads as empty until stale_reads run out."""

    def __init__(self, stale_reads=0):
        self.rows = []
        self.stale_reads = stale_reads

    def row_values(self, index):
        if self.stale_reads:
            self.stale_reads -= 1
            return []
        return list(self.rows[index - 1]) if len(self.rows) >= index else []

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def append_rows(self, values, value_input_option=None):
        self.rows.extend(list(v) for v in values)

    def get_all_records(self):
        header, *body = self.rows
        return [dict(zip(header, row)) for row in body]


class TestSheetResponseStore:

    def test_insert_appends_one_batch_without_header_check(self):
        worksheet = MagicMock()
        store = SheetResponseStore(lambda: worksheet)

        store.insert(make_records("2024-01-01T00:00:00.000Z", "2024-01-01T00:00:01.000Z"))

        worksheet.row_values.assert_not_called()
        worksheet.append_row.assert_not_called()
        worksheet.append_rows.assert_called_once_with(
            [
                ["u-1", "Prompt, number 0", 1, "2024-01-01T00:00:00.000Z"],
                ["u-1", "Prompt, number 1", 2, "2024-01-01T00:00:01.000Z"],
            ],
            value_input_option='RAW',
        )

    def test_header_written_on_empty_sheet(self):
        worksheet = SheetDouble()
        ensure_header(worksheet)
        ensure_header(worksheet)
        assert worksheet.rows == [list(RESPONSE_FIELDS)]

    def test_racing_first_submissions_still_load(self):
        # Both sessions open the new sheet and see an empty row 1 before either writes
        worksheet = SheetDouble(stale_reads=2)
        first = SheetResponseStore(lambda: worksheet)
        second = SheetResponseStore(lambda: worksheet)

        ensure_header(worksheet)
        second.insert(make_records("2024-01-01T00:00:01.000Z", user_id="b"))
        ensure_header(worksheet)
        first.insert(make_records("2024-01-01T00:00:02.000Z", user_id="a"))

        assert worksheet.rows.count(list(RESPONSE_FIELDS)) == 2
        rows = first.select_ordered_by_timestamp()
        assert [r.user_id for r in rows] == ["b", "a"]
        assert [r.selected_method for r in rows] == [1, 1]

    def test_insert_failure_is_a_write_error(self):
        worksheet = MagicMock()
        worksheet.append_rows.side_effect = gspread.exceptions.GSpreadException("quota exceeded")
        with pytest.raises(StoreWriteError, match="quota exceeded"):
            SheetResponseStore(lambda: worksheet).insert(make_records("2024-01-01T00:00:00.000Z"))

    def test_connection_failure_is_a_write_error(self):
        def broken():
            raise StoreConnectionError("GCP Service Account secret not found.")
        with pytest.raises(StoreWriteError, match="Service Account"):
            SheetResponseStore(broken).insert(make_records("2024-01-01T00:00:00.000Z"))

    def test_empty_batch_is_rejected(self):
        worksheet = MagicMock()
        with pytest.raises(ValueError):
            SheetResponseStore(lambda: worksheet).insert([])
        worksheet.append_rows.assert_not_called()

    def test_select_orders_by_timestamp(self):
        worksheet = MagicMock()
        worksheet.get_all_records.return_value = [
            {"user_id": "b", "prompt": "second", "selected_method": 2, "timestamp": "2024-01-02T00:00:00.000Z"},
            {"user_id": "a", "prompt": "first", "selected_method": "1", "timestamp": "2024-01-01T00:00:00.000Z"},
            {"user_id": "c", "prompt": "third", "selected_method": 3.0, "timestamp": "2024-01-03T00:00:00.000Z"},
        ]
        rows = SheetResponseStore(lambda: worksheet).select_ordered_by_timestamp()
        assert [r.user_id for r in rows] == ["a", "b", "c"]
        assert [r.selected_method for r in rows] == [1, 2, 3]

    def test_select_rejects_malformed_rows(self):
        worksheet = MagicMock()
        worksheet.get_all_records.return_value = [{"user_id": "a", "prompt": "p", "timestamp": "2024"}]
        with pytest.raises(StoreReadError, match="selected_method"):
            SheetResponseStore(lambda: worksheet).select_ordered_by_timestamp()

    def test_select_failure_is_a_read_error(self):
        worksheet = MagicMock()
        worksheet.get_all_records.side_effect = gspread.exceptions.GSpreadException("boom")
        with pytest.raises(StoreReadError):
            SheetResponseStore(lambda: worksheet).select_ordered_by_timestamp()

    def test_missing_service_account(self):
        with pytest.raises(StoreConnectionError):
            connect_to_gsheet("responses", None, None)


class TestLocalResponseStore:

    def test_missing_file_reads_empty(self, tmp_path):
        assert LocalResponseStore(str(tmp_path / "none.jsonl")).select_ordered_by_timestamp() == []

    def test_insert_then_select(self, tmp_path):
        store = LocalResponseStore(str(tmp_path / "data" / "responses.jsonl"))
        store.insert(make_records("2024-01-02T00:00:00.000Z", user_id="late"))
        store.insert(make_records("2024-01-01T00:00:00.000Z", user_id="early"))
        rows = store.select_ordered_by_timestamp()
        assert [r.user_id for r in rows] == ["early", "late"]

    def test_batch_is_written_as_json_lines(self, tmp_path):
        path = tmp_path / "responses.jsonl"
        LocalResponseStore(str(path)).insert(make_records("2024-01-01T00:00:00.000Z", "2024-01-01T00:00:01.000Z"))
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0]) == {
            "user_id": "u-1", "prompt": "Prompt, number 0", "selected_method": 1,
            "timestamp": "2024-01-01T00:00:00.000Z",
        }

    def test_corrupt_file_is_a_read_error(self, tmp_path):
        path = tmp_path / "responses.jsonl"
        path.write_text('{"user_id": "a"\n', encoding="utf-8")
        with pytest.raises(StoreReadError):
            LocalResponseStore(str(path)).select_ordered_by_timestamp()

    def test_unwritable_path_is_a_write_error(self, tmp_path):
        # A directory cannot be opened for appending
        with pytest.raises(StoreWriteError):
            LocalResponseStore(str(tmp_path)).insert(make_records("2024-01-01T00:00:00.000Z"))


def test_open_response_store_picks_backend(tmp_path):
    local = open_response_store(StudySettings(store_backend="local", local_store_path=str(tmp_path / "r.jsonl")))
    assert isinstance(local, LocalResponseStore)
    assert isinstance(open_response_store(StudySettings()), SheetResponseStore)
