from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .intervals import DateRange, parse_instant


class ContractStatus(str, Enum):
    ACTIVE = "active"
    SCHEDULED = "scheduled"
    PENDING = "pending"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


LIVE_STATUSES = frozenset({ContractStatus.ACTIVE, ContractStatus.SCHEDULED, ContractStatus.PENDING})


class Contract(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    unit_id: str
    status: ContractStatus
    start_date: datetime
    end_date: datetime
    availability_impact: Optional[DateRange] = None
    renter: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _coerce_instant(cls, v):
        return parse_instant(v)

    @computed_field
    @property
    def occupied_range(self) -> DateRange:
        if self.availability_impact is not None:
            return self.availability_impact
        return DateRange(start=self.start_date, end=self.end_date)

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES


class RentalUnit(BaseModel):
    id: str
    label: Optional[str] = None
    unit_type: Optional[str] = None
    bookable: bool = True


class AvailabilityOptions(BaseModel):
    include_conflicts: bool = Field(True, description="Return the conflicting contracts")
    calculate_next_available: bool = Field(False, description="Search the next free window when unavailable")
    max_search_date: Optional[datetime] = Field(None, description="Latest start accepted for the next free window")

    @field_validator("max_search_date", mode="before")
    @classmethod
    def _coerce_instant(cls, v):
        return None if v is None else parse_instant(v)


class AvailabilityResult(BaseModel):
    available: bool
    conflicts: List[Contract] = []
    next_available: Optional[DateRange] = None


class UnitError(BaseModel):
    unit_id: str
    kind: Literal["not_found", "service_error"]
    message: str


class AvailabilityRequest(BaseModel):
    unit_id: str
    requested_range: DateRange
    options: AvailabilityOptions = AvailabilityOptions()


class BatchAvailabilityRequest(BaseModel):
    unit_ids: List[str]
    requested_range: DateRange
    options: AvailabilityOptions = AvailabilityOptions()


BatchAvailabilityResponse = Dict[str, Union[AvailabilityResult, UnitError]]


class AvailableUnitsRequest(BaseModel):
    unit_types: List[str] = ["all"]
    requested_range: DateRange
    limit: int = Field(50, ge=1)


class UnitAvailability(BaseModel):
    unit: RentalUnit
    availability: AvailabilityResult
