"""
Read interface for contracts and rental units, plus the stores behind it.

Every gateway returns the same normalized shape (Contract / RentalUnit); only
the fetch differs. Unknown units raise NotFoundError, store failures raise
ServiceError.
"""
import logging
import threading
import time
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from . import config
from .errors import AvailabilityError, NotFoundError, ServiceError
from .intervals import DateRange
from .models import Contract, ContractStatus, RentalUnit

logger = logging.getLogger(__name__)

Row = Dict[str, object]

_TRUTHY = {"1", "true", "yes", "ja", "x", "y"}


class ContractGateway(Protocol):
    def fetch_contracts(self, unit_id: str, include_renter: bool = True) -> List[Contract]:
        """
        All contracts (live and not) for one unit.

        include_renter=False lets a store skip work it only does to fill
        Contract.renter (e.g. a second lookup). Stores that already hold the
        renter return their cached contracts as they are; callers must not
        mutate the returned list.
        """
        ...

    def list_units(self, unit_types: Optional[Iterable[str]] = None, limit: Optional[int] = None) -> List[RentalUnit]:
        """Bookable units, optionally limited to the given types."""
        ...

    def refresh(self) -> None:
        ...


def _matches_type(unit: RentalUnit, unit_types: Optional[Iterable[str]]) -> bool:
    if unit_types is None:
        return True
    wanted = {t.strip().lower() for t in unit_types}
    if config.ALL_TYPES in wanted:
        return True
    return (unit.unit_type or "").strip().lower() in wanted


def _select_units(units: Iterable[RentalUnit], unit_types, limit: Optional[int]) -> List[RentalUnit]:
    selected = [u for u in units if u.bookable and _matches_type(u, unit_types)]
    return selected[:limit] if limit is not None else selected


class InMemoryContractGateway:
    """Gateway over in-process lists. Units without contracts are known but free."""

    def __init__(self, units: Iterable[RentalUnit] = (), contracts: Iterable[Contract] = ()):
        self._units: Dict[str, RentalUnit] = {u.id: u for u in units}
        self._contracts: Dict[str, List[Contract]] = defaultdict(list)
        for contract in contracts:
            self._units.setdefault(contract.unit_id, RentalUnit(id=contract.unit_id))
            self._contracts[contract.unit_id].append(contract)

    def fetch_contracts(self, unit_id: str, include_renter: bool = True) -> List[Contract]:
        if unit_id not in self._units:
            raise NotFoundError(f"Rental unit {unit_id} not found", unit_id=unit_id)
        return self._contracts.get(unit_id, [])

    def list_units(self, unit_types=None, limit: Optional[int] = None) -> List[RentalUnit]:
        return _select_units(self._units.values(), unit_types, limit)

    def refresh(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Tabular stores (Google Sheets, xlsx): rows of header -> value dicts
# ---------------------------------------------------------------------------

def rows_from_values(values: List[List[object]]) -> List[Row]:
    """Turn a grid (first row = header) into dicts keyed by lower-cased header."""
    if not values:
        return []
    header = [str(h or "").strip().lower() for h in values[0]]
    rows: List[Row] = []
    for raw in values[1:]:
        if not any(str(c or "").strip() for c in raw):
            continue
        rows.append({h: (raw[i] if i < len(raw) else None) for i, h in enumerate(header) if h})
    return rows


def _cell(row: Row, key: str) -> Optional[object]:
    value = row.get(key)
    if isinstance(value, str):
        value = value.strip()
    return value if value not in (None, "") else None


def parse_unit_row(row: Row) -> Optional[RentalUnit]:
    unit_id = _cell(row, "unit_id")
    if unit_id is None:
        return None
    bookable = _cell(row, "bookable")
    return RentalUnit(
        id=str(unit_id),
        label=str(_cell(row, "label") or "") or None,
        unit_type=str(_cell(row, "type") or "") or None,
        bookable=True if bookable is None else str(bookable).strip().lower() in _TRUTHY,
    )


def parse_contract_row(row: Row) -> Contract:
    """Build a Contract from a sheet row. Raises ValueError for malformed rows."""
    contract_id = _cell(row, "contract_id")
    unit_id = _cell(row, "unit_id")
    if contract_id is None or unit_id is None:
        raise ValueError("contract_id and unit_id are required")

    impact = None
    impact_start, impact_end = _cell(row, "impact_start"), _cell(row, "impact_end")
    if impact_start is not None and impact_end is not None:
        impact = DateRange(start=impact_start, end=impact_end)

    renter = _cell(row, "renter")
    contract = Contract(
        id=str(contract_id),
        unit_id=str(unit_id),
        status=ContractStatus(str(_cell(row, "status") or "").lower()),
        start_date=_cell(row, "start"),
        end_date=_cell(row, "end"),
        availability_impact=impact,
        renter=str(renter) if renter is not None else None,
    )
    # an empty or inverted range would never overlap anything
    if not contract.occupied_range.is_valid():
        raise ValueError(f"occupied range must start before it ends: {contract.occupied_range}")
    return contract


class SnapshotContractGateway:
    """
    Base for stores that are read as two whole tables (units, contracts).

    The tables are indexed per unit and the index is kept for max_age_seconds;
    refresh() drops it. A failed read is remembered for failure_backoff_seconds,
    so a batch over a dead store costs one read, not one per unit.
    Subclasses implement _read_tables().
    """

    def __init__(
        self,
        max_age_seconds: int = config.SNAPSHOT_MAX_AGE_SECONDS,
        failure_backoff_seconds: int = config.SNAPSHOT_FAILURE_BACKOFF_SECONDS,
    ):
        self.max_age_seconds = max_age_seconds
        self.failure_backoff_seconds = failure_backoff_seconds
        self._lock = threading.Lock()
        self._loaded_at: Optional[float] = None
        self._failed_at: Optional[float] = None
        self._failure: Optional[Tuple[str, BaseException]] = None
        self._units: Dict[str, RentalUnit] = {}
        self._contracts: Dict[str, List[Contract]] = {}

    def _read_tables(self) -> Tuple[List[Row], List[Row]]:
        """Return (unit_rows, contract_rows)."""
        raise NotImplementedError

    def _is_stale(self) -> bool:
        if self._loaded_at is None:
            return True
        return time.monotonic() - self._loaded_at > self.max_age_seconds

    def _in_backoff(self) -> bool:
        if self._failure is None:
            return False
        return time.monotonic() - self._failed_at < self.failure_backoff_seconds

    def _snapshot(self) -> Tuple[Dict[str, RentalUnit], Dict[str, List[Contract]]]:
        with self._lock:
            if self._in_backoff():
                message, cause = self._failure
                raise ServiceError(message) from cause
            if self._is_stale():
                self._load()
            return self._units, self._contracts

    def _load(self) -> None:
        try:
            unit_rows, contract_rows = self._read_tables()
        except AvailabilityError as e:
            self._record_failure(e.message, e)
            raise
        except Exception as e:
            message = f"Failed to read contract store: {e}"
            self._record_failure(message, e)
            raise ServiceError(message) from e

        units: Dict[str, RentalUnit] = {}
        for row in unit_rows:
            unit = parse_unit_row(row)
            if unit is not None:
                units[unit.id] = unit

        contracts: Dict[str, List[Contract]] = defaultdict(list)
        skipped = 0
        for row in contract_rows:
            try:
                contract = parse_contract_row(row)
            except ValueError as e:
                skipped += 1
                logger.warning("Skipping malformed contract row %s: %s", row, e)
                continue
            contracts[contract.unit_id].append(contract)

        self._units = units
        self._contracts = dict(contracts)
        self._loaded_at = time.monotonic()
        self._failure = self._failed_at = None
        logger.info(
            "Loaded snapshot: %d units, %d contracts (%d rows skipped)",
            len(units), sum(len(v) for v in contracts.values()), skipped,
        )

    def _record_failure(self, message: str, cause: BaseException) -> None:
        self._failure = (message, cause)
        self._failed_at = time.monotonic()
        logger.error("Contract store read failed, next attempt in %ds: %s", self.failure_backoff_seconds, message)

    def fetch_contracts(self, unit_id: str, include_renter: bool = True) -> List[Contract]:
        units, contracts = self._snapshot()
        if unit_id not in units:
            raise NotFoundError(f"Rental unit {unit_id} not found", unit_id=unit_id)
        return contracts.get(unit_id, [])

    def list_units(self, unit_types=None, limit: Optional[int] = None) -> List[RentalUnit]:
        units, _ = self._snapshot()
        return _select_units(units.values(), unit_types, limit)

    def refresh(self) -> None:
        with self._lock:
            self._loaded_at = None
            self._failure = self._failed_at = None
