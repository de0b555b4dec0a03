"""
Batch availability: fan a single-unit calculation out over many rental units.

Per-unit work is independent and read-only, so it runs on a bounded thread
pool. The pool size only protects the contract store from request storms.
A failure of one unit (not found, store error) is recorded in that unit's slot
and never aborts the other units.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Union

from . import config
from .availability import AvailabilityCalculator, validate_range
from .errors import BatchCancelledError, InvalidRequestError, NotFoundError, ServiceError
from .intervals import DateRange
from .models import (
    AvailabilityOptions,
    AvailabilityResult,
    BatchAvailabilityRequest,
    BatchAvailabilityResponse,
    UnitAvailability,
    UnitError,
)

logger = logging.getLogger(__name__)

# Marks a unit that was skipped because the batch was cancelled first
_SKIPPED = object()


def _unique(unit_ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(unit_ids))


class BatchAvailabilityCoordinator:
    def __init__(self, calculator: AvailabilityCalculator, max_workers: int = config.BATCH_MAX_WORKERS):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.calculator = calculator
        self.max_workers = max_workers

    def _check_unit(
        self,
        unit_id: str,
        requested_range: DateRange,
        options: AvailabilityOptions,
        cancel_event: Optional[threading.Event],
    ) -> Union[AvailabilityResult, UnitError, object]:
        if cancel_event is not None and cancel_event.is_set():
            return _SKIPPED
        try:
            return self.calculator.calculate_availability(unit_id, requested_range, options)
        except (NotFoundError, ServiceError) as e:
            logger.warning("Unit %s failed in batch: %s", unit_id, e.message)
            return UnitError(unit_id=unit_id, kind=e.kind, message=e.message)

    def calculate_batch_availability(
        self,
        request: BatchAvailabilityRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchAvailabilityResponse:
        """
        One entry per distinct requested unit id: an AvailabilityResult, or a
        UnitError when that unit could not be resolved.

        Raises InvalidRequestError for an empty id list or an invalid range, and
        BatchCancelledError (with the results resolved so far in .partial) when
        cancel_event is set before every unit was started.
        """
        unit_ids = _unique(request.unit_ids)
        if not unit_ids:
            raise InvalidRequestError("unit_ids must not be empty")
        validate_range(request.requested_range)

        started = time.perf_counter()
        workers = min(self.max_workers, len(unit_ids))
        results: BatchAvailabilityResponse = {}
        cancelled = False

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mietfach-batch") as pool:
            futures = {
                unit_id: pool.submit(
                    self._check_unit, unit_id, request.requested_range, request.options, cancel_event
                )
                for unit_id in unit_ids
            }
            for unit_id, future in futures.items():
                outcome = future.result()
                if outcome is _SKIPPED:
                    cancelled = True
                    continue
                results[unit_id] = outcome

        if cancelled:
            logger.info("Batch cancelled after %d of %d units", len(results), len(unit_ids))
            raise BatchCancelledError(
                f"Batch cancelled after {len(results)} of {len(unit_ids)} units", partial=results
            )

        errors = sum(1 for r in results.values() if isinstance(r, UnitError))
        available = sum(1 for r in results.values() if isinstance(r, AvailabilityResult) and r.available)
        logger.info(
            "Batch of %d units: %d available, %d errors in %.1f ms",
            len(unit_ids), available, errors, (time.perf_counter() - started) * 1000,
        )
        return results

    def find_available_units(
        self,
        unit_types: Iterable[str],
        requested_range: DateRange,
        limit: int = 50,
    ) -> List[UnitAvailability]:
        """Bookable units of the given types that are free for the whole range."""
        validate_range(requested_range)
        units = self.calculator.gateway.list_units(unit_types=list(unit_types), limit=limit)
        if not units:
            return []

        request = BatchAvailabilityRequest(
            unit_ids=[u.id for u in units],
            requested_range=requested_range,
            options=AvailabilityOptions(include_conflicts=False, calculate_next_available=False),
        )
        results = self.calculate_batch_availability(request)

        found: List[UnitAvailability] = []
        for unit in units:
            result = results.get(unit.id)
            if isinstance(result, AvailabilityResult) and result.available:
                found.append(UnitAvailability(unit=unit, availability=result))
        return found
