import logging
from typing import List, Tuple

from .. import config
from ..gateway import Row, SnapshotContractGateway, rows_from_values
from .client import extract_spreadsheet_id, get_gspread_client

logger = logging.getLogger(__name__)


class SheetsContractGateway(SnapshotContractGateway):
    """Contracts and units kept in two worksheets of one Google spreadsheet."""

    def __init__(
        self,
        sheet_link: str,
        units_worksheet: str = config.UNITS_WORKSHEET,
        contracts_worksheet: str = config.CONTRACTS_WORKSHEET,
        max_age_seconds: int = config.SNAPSHOT_MAX_AGE_SECONDS,
        client=None,
    ):
        super().__init__(max_age_seconds=max_age_seconds)
        self.spreadsheet_id = extract_spreadsheet_id(sheet_link)
        self.units_worksheet = units_worksheet
        self.contracts_worksheet = contracts_worksheet
        self._client = client

    def _get_client(self):
        if self._client is None:
            self._client = get_gspread_client()
        return self._client

    def _read_tables(self) -> Tuple[List[Row], List[Row]]:
        sh = self._get_client().open_by_key(self.spreadsheet_id)
        logger.info("Reading worksheets %s, %s from %s", self.units_worksheet, self.contracts_worksheet, self.spreadsheet_id)
        units = rows_from_values(sh.worksheet(self.units_worksheet).get_all_values())
        contracts = rows_from_values(sh.worksheet(self.contracts_worksheet).get_all_values())
        return units, contracts
