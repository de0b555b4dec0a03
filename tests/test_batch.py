"""
Tests for batch availability and the available-unit search.
"""
import threading
from unittest.mock import MagicMock, patch

import pytest

from mietfach.availability import AvailabilityCalculator, find_next_available
from mietfach.batch import BatchAvailabilityCoordinator
from mietfach.conflicts import find_conflicts
from mietfach.errors import BatchCancelledError, InvalidRequestError, NotFoundError, ServiceError
from mietfach.gateway import InMemoryContractGateway, SnapshotContractGateway
from mietfach.models import (
    AvailabilityOptions,
    AvailabilityResult,
    BatchAvailabilityRequest,
    RentalUnit,
    UnitError,
)

from conftest import make_contract, rng


def _coordinator(gateway, max_workers=4):
    return BatchAvailabilityCoordinator(AvailabilityCalculator(gateway), max_workers=max_workers)


@pytest.fixture
def hundred_units():
    """mf-0..mf-99; units 60..99 hold a contract overlapping January."""
    units = [RentalUnit(id=f"mf-{i}", unit_type="kuehl" if i % 2 else "regal") for i in range(100)]
    contracts = [
        make_contract(f"c-{i}", "2025-01-10", "2025-01-20", unit_id=f"mf-{i}")
        for i in range(60, 100)
    ]
    # cancelled bookings on the free units must not matter
    contracts += [
        make_contract(f"x-{i}", "2025-01-01", "2025-02-01", unit_id=f"mf-{i}", status="cancelled")
        for i in range(0, 60, 7)
    ]
    return InMemoryContractGateway(units=units, contracts=contracts)


class TestBatchAvailability:
    """Tests for calculate_batch_availability."""

    def test_hundred_units_sixty_free(self, hundred_units, january):
        request = BatchAvailabilityRequest(
            unit_ids=[f"mf-{i}" for i in range(100)],
            requested_range=january,
        )

        results = _coordinator(hundred_units).calculate_batch_availability(request)

        assert len(results) == 100
        free = {uid for uid, r in results.items() if r.available}
        assert free == {f"mf-{i}" for i in range(60)}
        assert [c.id for c in results["mf-61"].conflicts] == ["c-61"]

    def test_matches_single_unit_results(self, hundred_units, january):
        options = AvailabilityOptions(calculate_next_available=True)
        calculator = AvailabilityCalculator(hundred_units)
        request = BatchAvailabilityRequest(
            unit_ids=["mf-1", "mf-70"], requested_range=january, options=options
        )

        results = BatchAvailabilityCoordinator(calculator).calculate_batch_availability(request)

        for unit_id in ("mf-1", "mf-70"):
            assert results[unit_id] == calculator.calculate_availability(unit_id, january, options)

    def test_duplicate_ids_collapse(self, hundred_units, january):
        request = BatchAvailabilityRequest(unit_ids=["mf-1", "mf-1", "mf-2"], requested_range=january)

        results = _coordinator(hundred_units).calculate_batch_availability(request)

        assert sorted(results) == ["mf-1", "mf-2"]

    def test_unknown_unit_recorded_without_aborting(self, hundred_units, january):
        request = BatchAvailabilityRequest(unit_ids=["mf-1", "ghost", "mf-70"], requested_range=january)

        results = _coordinator(hundred_units).calculate_batch_availability(request)

        assert len(results) == 3
        assert isinstance(results["ghost"], UnitError)
        assert results["ghost"].kind == "not_found"
        assert results["mf-1"].available is True
        assert results["mf-70"].available is False

    def test_store_failure_recorded_per_unit(self, january):
        def fetch(unit_id, include_renter=True):
            if unit_id == "error-id":
                raise ServiceError("Database connection failed", unit_id=unit_id)
            return []

        gateway = MagicMock()
        gateway.fetch_contracts.side_effect = fetch
        request = BatchAvailabilityRequest(unit_ids=["valid-id", "error-id"], requested_range=january)

        results = _coordinator(gateway).calculate_batch_availability(request)

        assert results["valid-id"].available is True
        assert results["error-id"] == UnitError(
            unit_id="error-id", kind="service_error", message="Database connection failed"
        )

    def test_dead_store_read_once_per_batch(self, january):
        class UnreachableStore(SnapshotContractGateway):
            def __init__(self):
                super().__init__(failure_backoff_seconds=60)
                self.reads = 0

            def _read_tables(self):
                self.reads += 1
                raise ConnectionError("sheet unreachable")

        gateway = UnreachableStore()
        request = BatchAvailabilityRequest(unit_ids=[f"mf-{i}" for i in range(100)], requested_range=january)

        results = _coordinator(gateway, max_workers=8).calculate_batch_availability(request)

        assert len(results) == 100
        assert all(isinstance(r, UnitError) and r.kind == "service_error" for r in results.values())
        assert gateway.reads == 1

    def test_unexpected_exception_is_wrapped_not_hidden(self, january):
        gateway = MagicMock()
        gateway.fetch_contracts.side_effect = TimeoutError("read timed out")
        request = BatchAvailabilityRequest(unit_ids=["mf-1"], requested_range=january)

        results = _coordinator(gateway).calculate_batch_availability(request)

        assert results["mf-1"].kind == "service_error"
        assert "read timed out" in results["mf-1"].message

    def test_empty_ids_rejected(self, hundred_units, january):
        with pytest.raises(InvalidRequestError):
            _coordinator(hundred_units).calculate_batch_availability(
                BatchAvailabilityRequest(unit_ids=[], requested_range=january)
            )

    def test_invalid_range_rejected_before_any_fetch(self):
        gateway = MagicMock()
        request = BatchAvailabilityRequest(unit_ids=["mf-1"], requested_range=rng("2025-02-01", "2025-01-01"))

        with pytest.raises(InvalidRequestError):
            _coordinator(gateway).calculate_batch_availability(request)
        gateway.fetch_contracts.assert_not_called()

    def test_skipping_optional_steps_keeps_verdicts(self, hundred_units, january):
        ids = [f"mf-{i}" for i in range(100)]
        full = _coordinator(hundred_units).calculate_batch_availability(
            BatchAvailabilityRequest(
                unit_ids=ids, requested_range=january,
                options=AvailabilityOptions(include_conflicts=True, calculate_next_available=True),
            )
        )
        lean = _coordinator(hundred_units).calculate_batch_availability(
            BatchAvailabilityRequest(
                unit_ids=ids, requested_range=january,
                options=AvailabilityOptions(include_conflicts=False, calculate_next_available=False),
            )
        )

        assert {k: v.available for k, v in full.items()} == {k: v.available for k, v in lean.items()}
        assert all(r.conflicts == [] and r.next_available is None for r in lean.values())
        assert full["mf-70"].next_available == rng("2025-01-20", "2025-02-20")

    def test_lean_options_skip_conflict_listing_and_gap_search(self, hundred_units, january):
        ids = [f"mf-{i}" for i in range(100)]
        lean = AvailabilityOptions(include_conflicts=False, calculate_next_available=False)

        with patch("mietfach.availability.find_conflicts", wraps=find_conflicts) as listing, \
                patch("mietfach.availability.find_next_available", wraps=find_next_available) as search:
            results = _coordinator(hundred_units).calculate_batch_availability(
                BatchAvailabilityRequest(unit_ids=ids, requested_range=january, options=lean)
            )

        assert sum(1 for r in results.values() if not r.available) == 40
        listing.assert_not_called()
        search.assert_not_called()

    def test_full_options_run_both_optional_steps(self, hundred_units, january):
        full = AvailabilityOptions(include_conflicts=True, calculate_next_available=True)

        with patch("mietfach.availability.find_conflicts", wraps=find_conflicts) as listing, \
                patch("mietfach.availability.find_next_available", wraps=find_next_available) as search:
            _coordinator(hundred_units).calculate_batch_availability(
                BatchAvailabilityRequest(unit_ids=["mf-1", "mf-70"], requested_range=january, options=full)
            )

        assert listing.call_count == 2
        search.assert_called_once()  # only the unavailable unit searches

    def test_max_workers_must_be_positive(self, hundred_units):
        with pytest.raises(ValueError):
            _coordinator(hundred_units, max_workers=0)


class TestCancellation:
    """Tests for cancelling an in-flight batch."""

    def test_cancelled_before_start_raises_with_empty_partial(self, hundred_units, january):
        event = threading.Event()
        event.set()
        request = BatchAvailabilityRequest(unit_ids=["mf-1", "mf-2"], requested_range=january)

        with pytest.raises(BatchCancelledError) as exc_info:
            _coordinator(hundred_units).calculate_batch_availability(request, cancel_event=event)

        assert exc_info.value.partial == {}

    def test_cancel_mid_batch_keeps_resolved_units(self, january):
        event = threading.Event()
        fetched = []

        def fetch(unit_id, include_renter=True):
            fetched.append(unit_id)
            if unit_id == "mf-1":
                event.set()
            return []

        gateway = MagicMock()
        gateway.fetch_contracts.side_effect = fetch
        request = BatchAvailabilityRequest(
            unit_ids=["mf-0", "mf-1", "mf-2", "mf-3"], requested_range=january
        )

        with pytest.raises(BatchCancelledError) as exc_info:
            _coordinator(gateway, max_workers=1).calculate_batch_availability(request, cancel_event=event)

        partial = exc_info.value.partial
        assert set(partial) == {"mf-0", "mf-1"}
        assert all(isinstance(r, AvailabilityResult) and r.available for r in partial.values())
        assert fetched == ["mf-0", "mf-1"]


class TestFindAvailableUnits:
    """Tests for the available-unit search."""

    def test_returns_only_free_units_of_requested_type(self, hundred_units, january):
        found = _coordinator(hundred_units).find_available_units(["kuehl"], january, limit=100)

        ids = [f.unit.id for f in found]
        assert ids == [f"mf-{i}" for i in range(1, 60, 2)]
        assert all(f.availability.available for f in found)

    def test_all_matches_every_type_and_limit_applies_before_check(self, hundred_units, january):
        found = _coordinator(hundred_units).find_available_units(["all"], january, limit=10)

        assert [f.unit.id for f in found] == [f"mf-{i}" for i in range(10)]

    def test_unbookable_units_are_skipped(self, january):
        gateway = InMemoryContractGateway(units=[
            RentalUnit(id="mf-1", unit_type="regal", bookable=False),
            RentalUnit(id="mf-2", unit_type="regal"),
        ])

        found = _coordinator(gateway).find_available_units(["regal"], january)

        assert [f.unit.id for f in found] == ["mf-2"]

    def test_no_matching_units(self, hundred_units, january):
        assert _coordinator(hundred_units).find_available_units(["vitrine"], january) == []

    def test_failed_unit_left_out(self, january):
        gateway = MagicMock()
        gateway.list_units.return_value = [RentalUnit(id="mf-1"), RentalUnit(id="mf-2")]

        def fetch(unit_id, include_renter=True):
            if unit_id == "mf-1":
                raise NotFoundError("gone", unit_id=unit_id)
            return []

        gateway.fetch_contracts.side_effect = fetch

        found = _coordinator(gateway).find_available_units(["all"], january)

        assert [f.unit.id for f in found] == ["mf-2"]
