import os
import re

import gspread
from google.oauth2.service_account import Credentials

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
]

_SPREADSHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")


def extract_spreadsheet_id(sheet_link: str) -> str:
    m = _SPREADSHEET_ID_RE.search(sheet_link)
    if not m:
        raise ValueError("Invalid Google Sheets link")
    return m.group(1)


def xlsx_export_url(sheet_link: str) -> str:
    spreadsheet_id = extract_spreadsheet_id(sheet_link)
    return f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}/export?format=xlsx"


def _credentials():
    creds_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "api_key.json")
    return Credentials.from_service_account_file(creds_path, scopes=SCOPES)


def get_gspread_client():
    credentials = _credentials()
    return gspread.authorize(credentials)
