from datetime import datetime, timezone

import pytest

from mietfach.gateway import InMemoryContractGateway
from mietfach.intervals import DateRange
from mietfach.models import Contract, RentalUnit


def dt(day: str) -> datetime:
    return datetime.strptime(day, "%Y-%m-%d").replace(tzinfo=timezone.utc)


def rng(start: str, end: str) -> DateRange:
    return DateRange(start=start, end=end)


def make_contract(contract_id, start, end, status="active", unit_id="mf-1", renter="Hofladen Müller"):
    return Contract(
        id=contract_id,
        unit_id=unit_id,
        status=status,
        start_date=start,
        end_date=end,
        renter=renter,
    )


@pytest.fixture
def january():
    return rng("2025-01-01", "2025-02-01")


@pytest.fixture
def unit_with_one_contract():
    """mf-1 holds one active contract occupying [Jan 10, Jan 20)."""
    return InMemoryContractGateway(
        units=[RentalUnit(id="mf-1", label="Regal A", unit_type="regal")],
        contracts=[make_contract("c-1", "2025-01-10", "2025-01-20")],
    )
