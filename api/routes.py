"""
Маршруты REST API: брони, лист ожидания, столы
"""
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import (
    get_current_actor, get_reservation_service, get_sweeper, get_table_registry,
    get_waiting_list_service, require_roles
)
from api.schemas import (
    AssignTableRequest, CreateReservationRequest, DecisionRequest, JoinWaitingListRequest,
    PositionResponse, ReservationSchema, ResponseSchema, SweepReportSchema,
    TableReservedResponse, TableSchema, TablesStatusResponse, TimeSlotSchema,
    WaitingEntrySchema, WaitingListResponse
)
from services.errors import ForbiddenError
from services.identity import ADMIN_ROLES, HOST_ROLES, STAFF_ROLES, Actor
from services.reservations import ReservationService
from services.sweeper import ActivationSweeper
from services.tables import TableRegistry
from services.waiting_list import WaitingListService
from utils.time_utils import format_time, parse_date, parse_time

reservations_router = APIRouter(prefix="/reservations", tags=["reservations"])
tables_router = APIRouter(prefix="/tables", tags=["tables"])


def position_response(info) -> PositionResponse:
    return PositionResponse(
        position=info.position,
        entry=WaitingEntrySchema.model_validate(info.entry),
        estimated_wait=info.estimated_wait,
    )


# ---------- брони ----------

@reservations_router.post("", response_model=ResponseSchema[ReservationSchema], status_code=201)
async def create_reservation(
    request: CreateReservationRequest,
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = await service.create(
        client_id=actor.user_id,
        table_id=request.table_id,
        day=parse_date(request.date),
        at=parse_time(request.time),
        party_size=request.party_size,
        notes=request.notes,
    )
    return ResponseSchema(data=ReservationSchema.model_validate(reservation))


@reservations_router.get("/my-reservations", response_model=ResponseSchema[List[ReservationSchema]])
def get_my_reservations(
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    reservations = service.get_user_reservations(actor.user_id)
    return ResponseSchema(data=[ReservationSchema.model_validate(r) for r in reservations])


@reservations_router.get("/all", response_model=ResponseSchema[List[ReservationSchema]])
def get_all_reservations(
    actor: Actor = Depends(require_roles(*ADMIN_ROLES)),
    service: ReservationService = Depends(get_reservation_service),
):
    reservations = service.get_all_reservations()
    return ResponseSchema(data=[ReservationSchema.model_validate(r) for r in reservations])


@reservations_router.get("/availability", response_model=ResponseSchema[List[TimeSlotSchema]])
def get_day_availability(
    date: str,
    party_size: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    slots = service.get_day_availability(parse_date(date), party_size)
    return ResponseSchema(data=[TimeSlotSchema.model_validate(slot) for slot in slots])


@reservations_router.get("/table-availability", response_model=ResponseSchema[List[TimeSlotSchema]])
def get_table_availability(
    table_id: int,
    date: str,
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    slots = service.get_table_availability(table_id, parse_date(date))
    return ResponseSchema(data=[TimeSlotSchema.model_validate(slot) for slot in slots])


@reservations_router.get("/tables", response_model=ResponseSchema[List[TableSchema]])
def get_tables(
    table_type: Optional[str] = Query(None, alias="type"),
    capacity: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    tables = service.get_tables(table_type, capacity)
    return ResponseSchema(data=[TableSchema.model_validate(t) for t in tables])


@reservations_router.get("/available-tables", response_model=ResponseSchema[List[TableSchema]])
def get_available_tables(
    date: str,
    time: str,
    table_type: str = Query(..., alias="type"),
    capacity: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    tables = service.get_available_tables(table_type, capacity, parse_date(date), parse_time(time))
    return ResponseSchema(data=[TableSchema.model_validate(t) for t in tables])


@reservations_router.get("/alternatives", response_model=ResponseSchema[List[str]])
def get_alternatives(
    date: str,
    time: str,
    party_size: int,
    table_type: Optional[str] = Query(None, alias="type"),
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    times = service.suggest_alternatives(table_type, party_size, parse_date(date), parse_time(time))
    return ResponseSchema(data=[format_time(t) for t in times])


@reservations_router.get("/check-table-reserved", response_model=ResponseSchema[TableReservedResponse])
def check_table_reserved(
    table_id: int,
    date: str,
    time: str,
    actor: Actor = Depends(require_roles(*HOST_ROLES)),
    service: ReservationService = Depends(get_reservation_service),
):
    reserved = service.is_table_reserved(table_id, parse_date(date), parse_time(time))
    return ResponseSchema(data=TableReservedResponse(table_id=table_id, reserved=reserved))


@reservations_router.post("/sweep", response_model=ResponseSchema[SweepReportSchema])
async def run_sweep(
    actor: Actor = Depends(require_roles(*STAFF_ROLES)),
    sweeper: ActivationSweeper = Depends(get_sweeper),
):
    report = await sweeper.run()
    return ResponseSchema(data=SweepReportSchema(**asdict(report)))


@reservations_router.get("/{reservation_id}", response_model=ResponseSchema[ReservationSchema])
def get_reservation(
    reservation_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = service.get_reservation(reservation_id, actor)
    return ResponseSchema(data=ReservationSchema.model_validate(reservation))


@reservations_router.put("/{reservation_id}/status", response_model=ResponseSchema[ReservationSchema])
async def decide_reservation(
    reservation_id: int,
    request: DecisionRequest,
    actor: Actor = Depends(require_roles(*ADMIN_ROLES)),
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = await service.decide(reservation_id, actor.user_id, request.status, request.reason)
    return ResponseSchema(data=ReservationSchema.model_validate(reservation))


@reservations_router.put("/{reservation_id}/cancel", response_model=ResponseSchema[ReservationSchema])
async def cancel_reservation(
    reservation_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = await service.cancel(reservation_id, actor.user_id)
    return ResponseSchema(data=ReservationSchema.model_validate(reservation))


# ---------- лист ожидания ----------

@tables_router.get("/waiting-list", response_model=ResponseSchema[WaitingListResponse])
def get_waiting_list(
    actor: Actor = Depends(require_roles(*HOST_ROLES)),
    service: WaitingListService = Depends(get_waiting_list_service),
):
    summary = service.get_waiting_list()
    return ResponseSchema(data=WaitingListResponse(
        entries=[WaitingEntrySchema.model_validate(e) for e in summary.entries],
        total=summary.total,
        average_wait=summary.average_wait,
    ))


@tables_router.post("/waiting-list", response_model=ResponseSchema[WaitingEntrySchema], status_code=201)
async def join_waiting_list(
    request: JoinWaitingListRequest,
    actor: Actor = Depends(get_current_actor),
    service: WaitingListService = Depends(get_waiting_list_service),
):
    client_id = actor.user_id
    if request.client_id is not None and request.client_id != actor.user_id:
        if not actor.is_staff:
            raise ForbiddenError("Записать другого гостя может только персонал")
        client_id = request.client_id

    entry = await service.join(
        client_id, request.party_size, request.preferred_table_type, request.special_requests
    )
    return ResponseSchema(data=WaitingEntrySchema.model_validate(entry))


@tables_router.get("/waiting-list/my-position", response_model=ResponseSchema[PositionResponse])
def get_my_position(
    actor: Actor = Depends(get_current_actor),
    service: WaitingListService = Depends(get_waiting_list_service),
):
    return ResponseSchema(data=position_response(service.position(actor.user_id)))


@tables_router.get("/waiting-list/position/{client_id}", response_model=ResponseSchema[PositionResponse])
def get_client_position(
    client_id: int,
    actor: Actor = Depends(require_roles(*HOST_ROLES)),
    service: WaitingListService = Depends(get_waiting_list_service),
):
    return ResponseSchema(data=position_response(service.position(client_id)))


@tables_router.put("/waiting-list/{entry_id}/cancel", response_model=ResponseSchema[WaitingEntrySchema])
def cancel_waiting_entry(
    entry_id: int,
    actor: Actor = Depends(get_current_actor),
    service: WaitingListService = Depends(get_waiting_list_service),
):
    entry = service.cancel(entry_id, actor)
    return ResponseSchema(data=WaitingEntrySchema.model_validate(entry))


@tables_router.put("/waiting-list/{entry_id}/no-show", response_model=ResponseSchema[WaitingEntrySchema])
def mark_no_show(
    entry_id: int,
    actor: Actor = Depends(require_roles(*HOST_ROLES)),
    service: WaitingListService = Depends(get_waiting_list_service),
):
    entry = service.mark_no_show(entry_id)
    return ResponseSchema(data=WaitingEntrySchema.model_validate(entry))


# ---------- столы ----------

@tables_router.get("/status", response_model=ResponseSchema[TablesStatusResponse])
def get_tables_status(
    actor: Actor = Depends(require_roles(*STAFF_ROLES)),
    registry: TableRegistry = Depends(get_table_registry),
):
    status = registry.get_tables_status()
    return ResponseSchema(data=TablesStatusResponse(
        tables=[TableSchema.model_validate(t) for t in status.tables],
        occupied=status.occupied,
        assigned=status.assigned,
        available=status.available,
        total_capacity=status.total_capacity,
        occupied_capacity=status.occupied_capacity,
        assigned_capacity=status.assigned_capacity,
    ))


@tables_router.post("/assign", response_model=ResponseSchema[TableSchema])
def assign_table(
    request: AssignTableRequest,
    actor: Actor = Depends(require_roles(*HOST_ROLES)),
    service: WaitingListService = Depends(get_waiting_list_service),
):
    table = service.assign_table(request.waiting_entry_id, request.table_id)
    return ResponseSchema(data=TableSchema.model_validate(table))


@tables_router.post("/{table_id}/activate", response_model=ResponseSchema[TableSchema])
def confirm_arrival(
    table_id: int,
    actor: Actor = Depends(get_current_actor),
    service: WaitingListService = Depends(get_waiting_list_service),
):
    table = service.confirm_arrival(actor.user_id, table_id=table_id)
    return ResponseSchema(data=TableSchema.model_validate(table))


@tables_router.post("/{table_id}/free", response_model=ResponseSchema[TableSchema])
def free_table(
    table_id: int,
    actor: Actor = Depends(require_roles(*STAFF_ROLES)),
    service: WaitingListService = Depends(get_waiting_list_service),
):
    table = service.free_table(table_id)
    return ResponseSchema(data=TableSchema.model_validate(table))
