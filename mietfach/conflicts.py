from typing import Iterable, List

from .intervals import DateRange, overlaps
from .models import Contract


def live_contracts(contracts: Iterable[Contract]) -> List[Contract]:
    """Contracts that count toward occupancy (active, scheduled, pending)."""
    return [c for c in contracts if c.is_live]


def is_conflict(contract: Contract, requested_range: DateRange) -> bool:
    return contract.is_live and overlaps(contract.occupied_range, requested_range)


def find_conflicts(contracts: Iterable[Contract], requested_range: DateRange) -> List[Contract]:
    """Live contracts overlapping the request, ordered by occupied start then id."""
    conflicts = [c for c in contracts if is_conflict(c, requested_range)]
    conflicts.sort(key=lambda c: (c.occupied_range.start, c.id))
    return conflicts


def has_conflict(contracts: Iterable[Contract], requested_range: DateRange) -> bool:
    # Stops at the first hit; used when conflict details are not wanted
    return any(is_conflict(c, requested_range) for c in contracts)
