import logging
import os
import tempfile
from typing import List, Tuple

import requests
from openpyxl import load_workbook

from .. import config
from ..gateway import Row, SnapshotContractGateway, rows_from_values
from .client import xlsx_export_url

logger = logging.getLogger(__name__)


def _download_excel_file(sheet_link: str) -> str:
    """Download a Google Sheets link as xlsx and return the temporary file path"""
    download_url = xlsx_export_url(sheet_link)

    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix='.xlsx')
    temp_path = temp_file.name
    temp_file.close()

    try:
        response = requests.get(download_url, timeout=30)
        response.raise_for_status()
        with open(temp_path, 'wb') as f:
            f.write(response.content)
        return temp_path
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def _worksheet_values(workbook, title: str) -> List[List[object]]:
    if title not in workbook.sheetnames:
        raise KeyError(f"Worksheet {title!r} not found")
    return [list(row) for row in workbook[title].iter_rows(values_only=True)]


class WorkbookContractGateway(SnapshotContractGateway):
    """
    Contracts and units read from an .xlsx workbook.

    source is either a local path or a Google Sheets link; links are fetched
    through the sheet's xlsx export on every reload.
    """

    def __init__(
        self,
        source: str,
        units_worksheet: str = config.UNITS_WORKSHEET,
        contracts_worksheet: str = config.CONTRACTS_WORKSHEET,
        max_age_seconds: int = config.SNAPSHOT_MAX_AGE_SECONDS,
    ):
        super().__init__(max_age_seconds=max_age_seconds)
        self.source = source
        self.units_worksheet = units_worksheet
        self.contracts_worksheet = contracts_worksheet

    def _is_remote(self) -> bool:
        return self.source.startswith(("http://", "https://"))

    def _read_tables(self) -> Tuple[List[Row], List[Row]]:
        path = _download_excel_file(self.source) if self._is_remote() else self.source
        logger.info("Reading workbook %s", self.source)
        try:
            workbook = load_workbook(filename=path, read_only=True, data_only=True)
            try:
                units = rows_from_values(_worksheet_values(workbook, self.units_worksheet))
                contracts = rows_from_values(_worksheet_values(workbook, self.contracts_worksheet))
            finally:
                workbook.close()
        finally:
            if self._is_remote() and os.path.exists(path):
                os.unlink(path)
        return units, contracts
