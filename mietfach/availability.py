import logging
from datetime import datetime, timedelta
from typing import List, Optional

from . import config
from .conflicts import find_conflicts, has_conflict, live_contracts
from .errors import AvailabilityError, InvalidRequestError, ServiceError
from .gateway import ContractGateway
from .intervals import DateRange, merge
from .models import AvailabilityOptions, AvailabilityResult, Contract

logger = logging.getLogger(__name__)


def validate_range(requested_range: DateRange) -> None:
    if not requested_range.is_valid():
        raise InvalidRequestError(
            f"Requested range must satisfy start < end (got {requested_range})"
        )


def find_next_available(
    contracts: List[Contract],
    requested_range: DateRange,
    max_search_date: datetime,
) -> Optional[DateRange]:
    """
    Earliest window of the requested duration, starting no earlier than the
    requested start, that overlaps no live contract.

    Returns None when that window would start after max_search_date.
    """
    duration = requested_range.duration
    relevant = [
        c.occupied_range
        for c in live_contracts(contracts)
        if c.occupied_range.end > requested_range.start
    ]

    cursor = requested_range.start
    for occupied in merge(relevant):
        if occupied.start - cursor >= duration:
            break
        if occupied.end > cursor:
            cursor = occupied.end

    if cursor > max_search_date:
        return None
    return DateRange(start=cursor, end=cursor + duration)


class AvailabilityCalculator:
    """Availability verdict for a single rental unit."""

    def __init__(self, gateway: ContractGateway, horizon_days: int = config.NEXT_AVAILABLE_HORIZON_DAYS):
        self.gateway = gateway
        self.horizon_days = horizon_days

    def calculate_availability(
        self,
        unit_id: str,
        requested_range: DateRange,
        options: Optional[AvailabilityOptions] = None,
    ) -> AvailabilityResult:
        """
        Check a unit against a requested range.

        Raises InvalidRequestError for start >= end, NotFoundError for unknown
        units and ServiceError when the gateway fails. Nothing is retried here.
        """
        opts = options or AvailabilityOptions()
        validate_range(requested_range)

        contracts = self._fetch(unit_id, include_renter=opts.include_conflicts)

        conflicts: List[Contract] = []
        if opts.include_conflicts:
            conflicts = find_conflicts(contracts, requested_range)
            available = not conflicts
        else:
            available = not has_conflict(contracts, requested_range)

        result = AvailabilityResult(available=available, conflicts=conflicts)

        if not available and opts.calculate_next_available:
            max_search_date = opts.max_search_date or (
                requested_range.start + timedelta(days=self.horizon_days)
            )
            result.next_available = find_next_available(contracts, requested_range, max_search_date)

        logger.debug(
            "Unit %s for %s: available=%s conflicts=%d next=%s",
            unit_id, requested_range, available, len(conflicts), result.next_available,
        )
        return result

    def _fetch(self, unit_id: str, include_renter: bool) -> List[Contract]:
        try:
            return self.gateway.fetch_contracts(unit_id, include_renter=include_renter)
        except AvailabilityError:
            raise
        except Exception as e:
            logger.warning("Contract fetch failed for unit %s: %s", unit_id, e, exc_info=True)
            raise ServiceError(f"Failed to fetch contracts for unit {unit_id}: {e}", unit_id=unit_id) from e
