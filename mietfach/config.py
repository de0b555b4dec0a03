import os

# Where contracts and rental units are read from: "sheets" (Google Sheets via gspread)
# or "workbook" (local .xlsx, or a Google Sheets link downloaded as xlsx)
DATA_SOURCE: str = os.getenv("MIETFACH_DATA_SOURCE", "sheets").strip().lower()

SHEET_LINK: str = os.getenv("MIETFACH_SHEET_LINK", "")
WORKBOOK: str = os.getenv("MIETFACH_WORKBOOK", os.path.join("data", "mietfaecher.xlsx"))

UNITS_WORKSHEET: str = os.getenv("MIETFACH_UNITS_WORKSHEET", "Mietfaecher")
CONTRACTS_WORKSHEET: str = os.getenv("MIETFACH_CONTRACTS_WORKSHEET", "Vertraege")

# Snapshot of the tabular store is reloaded once older than this
SNAPSHOT_MAX_AGE_SECONDS: int = int(os.getenv("MIETFACH_SNAPSHOT_MAX_AGE_SECONDS", "300"))

# After a failed store read, callers get the same ServiceError for this long
# instead of each one hitting the store again
SNAPSHOT_FAILURE_BACKOFF_SECONDS: int = int(os.getenv("MIETFACH_SNAPSHOT_FAILURE_BACKOFF_SECONDS", "30"))

# Upper bound on concurrent per-unit fetches inside one batch call
BATCH_MAX_WORKERS: int = int(os.getenv("MIETFACH_BATCH_MAX_WORKERS", "8"))

# Default next-available search horizon, counted from the requested start
NEXT_AVAILABLE_HORIZON_DAYS: int = int(os.getenv("MIETFACH_NEXT_AVAILABLE_HORIZON_DAYS", "365"))

LOG_LEVEL: str = os.getenv("MIETFACH_LOG_LEVEL", "INFO").upper()

# Unit type that matches every unit in the available-unit search
ALL_TYPES = "all"
