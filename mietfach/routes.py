import logging
from functools import lru_cache
from typing import Dict, List, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from . import config
from .availability import AvailabilityCalculator
from .batch import BatchAvailabilityCoordinator
from .errors import AvailabilityError, availability_error_to_http
from .gateway import ContractGateway
from .intervals import DateRange
from .models import (
    AvailabilityOptions,
    AvailabilityRequest,
    AvailabilityResult,
    AvailableUnitsRequest,
    BatchAvailabilityRequest,
    UnitAvailability,
    UnitError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_gateway() -> ContractGateway:
    if config.DATA_SOURCE == "workbook":
        from .sheets.workbook import WorkbookContractGateway
        return WorkbookContractGateway(config.WORKBOOK)
    if config.DATA_SOURCE == "sheets":
        from .sheets.contracts_sheet import SheetsContractGateway
        return SheetsContractGateway(config.SHEET_LINK)
    raise RuntimeError(f"Unknown MIETFACH_DATA_SOURCE: {config.DATA_SOURCE}")


def get_calculator(gateway: ContractGateway = Depends(get_gateway)) -> AvailabilityCalculator:
    return AvailabilityCalculator(gateway)


def get_coordinator(calculator: AvailabilityCalculator = Depends(get_calculator)) -> BatchAvailabilityCoordinator:
    return BatchAvailabilityCoordinator(calculator)


async def _run(func, *args):
    try:
        return await run_in_threadpool(func, *args)
    except AvailabilityError as e:
        logger.info("Availability request failed (%s): %s", e.kind, e.message)
        raise availability_error_to_http(e) from e


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/refresh")
async def refresh(gateway: ContractGateway = Depends(get_gateway)):
    await _run(gateway.refresh)
    return {"status": "refreshed"}


@router.post("/availability", response_model=AvailabilityResult)
async def availability_post(
    body: AvailabilityRequest,
    calculator: AvailabilityCalculator = Depends(get_calculator),
):
    return await _run(calculator.calculate_availability, body.unit_id, body.requested_range, body.options)


@router.get("/availability/{unit_id}", response_model=AvailabilityResult)
async def availability(
    unit_id: str,
    start: str = Query(..., description="ISO-8601 or YYYY/MM/DD"),
    end: str = Query(..., description="ISO-8601 or YYYY/MM/DD (exclusive)"),
    include_conflicts: bool = Query(True),
    calculate_next_available: bool = Query(False),
    calculator: AvailabilityCalculator = Depends(get_calculator),
):
    try:
        requested_range = DateRange(start=start, end=end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid date: {e}")
    options = AvailabilityOptions(
        include_conflicts=include_conflicts,
        calculate_next_available=calculate_next_available,
    )
    return await _run(calculator.calculate_availability, unit_id, requested_range, options)


@router.post("/availability/batch", response_model=Dict[str, Union[AvailabilityResult, UnitError]])
async def availability_batch(
    body: BatchAvailabilityRequest,
    coordinator: BatchAvailabilityCoordinator = Depends(get_coordinator),
):
    return await _run(coordinator.calculate_batch_availability, body)


@router.post("/units/available", response_model=List[UnitAvailability])
async def available_units(
    body: AvailableUnitsRequest,
    coordinator: BatchAvailabilityCoordinator = Depends(get_coordinator),
):
    return await _run(coordinator.find_available_units, body.unit_types, body.requested_range, body.limit)
