# response_store.py
"""Access to the shared survey response table.

This is the only module that performs I/O on collected responses. Two
backends honour the same contract: a Google Sheets worksheet for the
deployed study and a JSON-lines file for local runs.
"""
import json
import logging
import os

import gspread
import streamlit as st
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from requests.exceptions import RequestException

from study_models import RESPONSE_FIELDS, MalformedRecordError, StudyError, SurveyResponse

logger = logging.getLogger(__name__)

GSHEET_SCOPES = ["https://www.googleapis.com/auth/spreadsheets", "https://www.googleapis.com/auth/drive"]
# Errors the Sheets client can surface for a single call
SHEET_ERRORS = (gspread.exceptions.GSpreadException, GoogleAuthError, RequestException)


class StoreError(StudyError):
    """The response store could not complete a request."""


class StoreConnectionError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


class StoreReadError(StoreError):
    pass


class ResponseStore:
    """Append-only table of survey responses."""

    def insert(self, records):
        """Appends all records as one batch. Raises StoreWriteError if the batch was not accepted."""
        raise NotImplementedError

    def select_ordered_by_timestamp(self):
        """Returns every stored response, oldest first. Raises StoreReadError on failure."""
        raise NotImplementedError


def check_batch(records):
    records = list(records)
    if not records:
        raise ValueError("Cannot insert an empty batch of responses")
    return records


def is_header_row(row):
    return isinstance(row, dict) and all(str(row.get(name, "")).strip() == name for name in RESPONSE_FIELDS)


def order_by_timestamp(rows):
    # A header written twice by racing first submissions reads back as a data row
    try:
        responses = [SurveyResponse.from_row(row) for row in rows if not is_header_row(row)]
    except MalformedRecordError as e:
        raise StoreReadError(f"Malformed response in store: {e}") from e
    # sorted() is stable, so rows sharing a timestamp keep their stored order
    return sorted(responses, key=lambda response: response.timestamp)


# --- GOOGLE SHEETS ---
def ensure_header(worksheet):
    """Writes the column names into row 1 of an empty worksheet."""
    if not worksheet.row_values(1):
        worksheet.append_row(list(RESPONSE_FIELDS), value_input_option='RAW')
    return worksheet


@st.cache_resource
def connect_to_gsheet(spreadsheet_name, worksheet_name, _service_account):
    """Opens the response worksheet with a service account."""
    if not _service_account:
        raise StoreConnectionError("GCP Service Account secret not found. Cannot connect to Google Sheets.")
    try:
        creds = Credentials.from_service_account_info(_service_account, scopes=GSHEET_SCOPES)
        client = gspread.authorize(creds)
        spreadsheet = client.open(spreadsheet_name)
        if not worksheet_name:
            return ensure_header(spreadsheet.sheet1)
        try:
            return ensure_header(spreadsheet.worksheet(worksheet_name))
        except gspread.WorksheetNotFound:
            logger.info("Creating worksheet '%s' in '%s'", worksheet_name, spreadsheet_name)
            return ensure_header(spreadsheet.add_worksheet(title=worksheet_name, rows=1000, cols=len(RESPONSE_FIELDS)))
    except (ValueError,) + SHEET_ERRORS as e:
        raise StoreConnectionError(f"Error connecting to Google Sheets: {e}") from e


class SheetResponseStore(ResponseStore):

    def __init__(self, open_worksheet):
        # Called on every request; connect_to_gsheet caches the handle per process
        self.open_worksheet = open_worksheet

    def insert(self, records):
        records = check_batch(records)
        rows = [[record.user_id, record.prompt, record.selected_method, record.timestamp] for record in records]
        try:
            worksheet = self.open_worksheet()
            worksheet.append_rows(rows, value_input_option='RAW')
        except StoreConnectionError as e:
            raise StoreWriteError(str(e)) from e
        except SHEET_ERRORS as e:
            raise StoreWriteError(f"Could not save to Google Sheets: {e}") from e
        logger.info("Appended %d response rows to Google Sheets", len(rows))

    def select_ordered_by_timestamp(self):
        try:
            worksheet = self.open_worksheet()
            rows = worksheet.get_all_records()
        except StoreConnectionError as e:
            raise StoreReadError(str(e)) from e
        except SHEET_ERRORS as e:
            raise StoreReadError(f"Could not read from Google Sheets: {e}") from e
        return order_by_timestamp(rows)


# --- LOCAL FILE ---
class LocalResponseStore(ResponseStore):
    """Keeps responses in a JSON-lines file, one object per record."""

    def __init__(self, path):
        self.path = path

    def insert(self, records):
        records = check_batch(records)
        payload = "".join(json.dumps(record.to_row()) + "\n" for record in records)
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "a", encoding='utf-8') as f:
                f.write(payload)
        except OSError as e:
            raise StoreWriteError(f"Could not save responses to {self.path}: {e}") from e
        logger.info("Appended %d response rows to %s", len(records), self.path)

    def select_ordered_by_timestamp(self):
        if not os.path.exists(self.path):
            return []
        rows = []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                for line_number, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        rows.append(json.loads(line))
                    except json.JSONDecodeError as e:
                        raise StoreReadError(f"Corrupt line {line_number} in {self.path}: {e}") from e
        except OSError as e:
            raise StoreReadError(f"Could not read responses from {self.path}: {e}") from e
        return order_by_timestamp(rows)


def open_response_store(settings):
    """Builds the store selected by the settings' store_backend."""
    if settings.store_backend == "local":
        return LocalResponseStore(settings.local_store_path)
    return SheetResponseStore(
        lambda: connect_to_gsheet(settings.spreadsheet_name, settings.worksheet_name, settings.service_account)
    )
