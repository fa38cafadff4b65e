"""
Схемы запросов и ответов REST API
"""
import datetime as dt
from typing import Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, field_serializer

from utils.time_utils import format_time

T = TypeVar("T")


class ResponseSchema(BaseModel, Generic[T]):
    data: T


class CreateReservationRequest(BaseModel):
    table_id: int
    date: str
    time: str
    party_size: int
    notes: Optional[str] = None


class DecisionRequest(BaseModel):
    status: str
    reason: Optional[str] = None


class JoinWaitingListRequest(BaseModel):
    party_size: int
    preferred_table_type: Optional[str] = None
    special_requests: Optional[str] = None
    # персонал может записать гостя от его имени
    client_id: Optional[int] = None


class AssignTableRequest(BaseModel):
    waiting_entry_id: int
    table_id: int


class TableSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: int
    capacity: int
    type: str
    occupied: bool
    claimant_id: Optional[int] = None
    assigned_staff_id: Optional[int] = None


class ReservationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    table_id: int
    date: dt.date
    time: dt.time
    party_size: int
    status: str
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[dt.datetime] = None
    created_at: Optional[dt.datetime] = None

    @field_serializer("time")
    def serialize_time(self, value: dt.time) -> str:
        return format_time(value)


class WaitingEntrySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    party_size: int
    preferred_table_type: Optional[str] = None
    special_requests: Optional[str] = None
    status: str
    priority: int
    reservation_id: Optional[int] = None
    joined_at: Optional[dt.datetime] = None
    seated_at: Optional[dt.datetime] = None
    cancelled_at: Optional[dt.datetime] = None


class TimeSlotSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time: dt.time
    available: bool
    table_id: Optional[int] = None
    table_number: Optional[int] = None
    table_capacity: Optional[int] = None

    @field_serializer("time")
    def serialize_time(self, value: dt.time) -> str:
        return format_time(value)


class TableReservedResponse(BaseModel):
    table_id: int
    reserved: bool


class PositionResponse(BaseModel):
    position: int
    entry: WaitingEntrySchema
    estimated_wait: Optional[int] = None


class WaitingListResponse(BaseModel):
    entries: List[WaitingEntrySchema]
    total: int
    average_wait: Optional[int] = None


class TablesStatusResponse(BaseModel):
    tables: List[TableSchema]
    occupied: int
    assigned: int
    available: int
    total_capacity: int
    occupied_capacity: int
    assigned_capacity: int


class SweepReportSchema(BaseModel):
    expired: List[int]
    completed: List[int]
    activated: List[int]
    already_active: List[Tuple[int, Optional[int]]]
    deferred: List[int]
    failed: List[int]
