import datetime as dt
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Self
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_current_user, require_admin
from src.base.config import BOOKING_WINDOW_DAYS, SLOT_DURATION_MINUTES
from src.base.dependencies import get_session
from src.base.models import utcnow
from src.base.schemas import BaseDTO
from src.scheduling.models import AvailabilityRule, TimeSlot
from src.scheduling.service import (
    available_times,
    list_bookable_slots,
    materialize_slots,
)
from src.user.models import UserProfile

logger = logging.getLogger(__name__)

SLOT_DURATION = timedelta(minutes=SLOT_DURATION_MINUTES)

router = APIRouter()
admin_router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


class RuleCreate(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    max_appointments: int = Field(default=1, ge=1)
    is_active: bool = True

    @model_validator(mode="after")
    def check_window(self) -> Self:
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class RuleUpdate(BaseModel):
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    start_time: time | None = None
    end_time: time | None = None
    max_appointments: int | None = Field(default=None, ge=1)
    is_active: bool | None = None


class RuleResponse(BaseDTO):
    day_of_week: int
    start_time: time
    end_time: time
    max_appointments: int
    is_active: bool


class SlotCreate(BaseModel):
    date: dt.date
    time: dt.time
    is_available: bool = True
    max_appointments: int = Field(default=1, ge=1)


class SlotUpdate(BaseModel):
    date: dt.date | None = None
    time: dt.time | None = None
    is_available: bool | None = None
    max_appointments: int | None = Field(default=None, ge=1)


class SlotEdit(SlotUpdate):
    id: UUID


class SlotResponse(BaseDTO):
    date: dt.date
    time: dt.time
    is_available: bool
    max_appointments: int


class BookableSlotResponse(SlotResponse):
    starts_at: datetime
    booked_count: int


class BulkSlotChanges(BaseModel):
    new_slots: list[SlotCreate] = []
    edited_slots: list[SlotEdit] = []
    deleted_slot_ids: list[UUID] = []


class GenerateSlots(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_range(self) -> Self:
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


@router.get("/time-slots", response_model=list[BookableSlotResponse])
async def list_time_slots(
    start_date: date | None = None,
    end_date: date | None = None,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    now = utcnow()
    start = start_date or now.date()
    end = end_date or start + timedelta(days=BOOKING_WINDOW_DAYS)
    if end < start:
        raise HTTPException(status_code=400, detail="end_date is before start_date")

    rows = await list_bookable_slots(session, start, end, now)
    return [
        {
            **SlotResponse.model_validate(slot).model_dump(),
            "starts_at": slot.starts_at,
            "booked_count": booked,
        }
        for slot, booked in rows
    ]


@router.get("/available-slots", response_model=list[datetime])
async def list_available_times(
    day: date = Query(alias="date"),
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[datetime]:
    return await available_times(session, day, SLOT_DURATION)


async def _get_rule(session: AsyncSession, rule_id: UUID) -> AvailabilityRule:
    rule = await session.get(AvailabilityRule, rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Availability rule not found")
    return rule


async def _get_slot(session: AsyncSession, slot_id: UUID) -> TimeSlot:
    slot = await session.get(TimeSlot, slot_id)
    if slot is None:
        raise HTTPException(status_code=404, detail="Time slot not found")
    return slot


@admin_router.get("/availability-rules", response_model=list[RuleResponse])
async def list_rules(
    session: AsyncSession = Depends(get_session),
) -> list[AvailabilityRule]:
    stmt = select(AvailabilityRule).order_by(
        AvailabilityRule.day_of_week, AvailabilityRule.start_time
    )
    return list((await session.execute(stmt)).scalars().all())


@admin_router.post("/availability-rules", response_model=RuleResponse, status_code=201)
async def create_rule(
    body: RuleCreate,
    session: AsyncSession = Depends(get_session),
) -> AvailabilityRule:
    rule = AvailabilityRule(**body.model_dump())
    session.add(rule)
    await session.flush()
    return rule


@admin_router.patch("/availability-rules/{rule_id}", response_model=RuleResponse)
async def update_rule(
    rule_id: UUID,
    body: RuleUpdate,
    session: AsyncSession = Depends(get_session),
) -> AvailabilityRule:
    rule = await _get_rule(session, rule_id)
    changes = body.model_dump(exclude_unset=True)
    start = changes.get("start_time", rule.start_time)
    end = changes.get("end_time", rule.end_time)
    if start is None or end is None or start >= end:
        raise HTTPException(
            status_code=400, detail="start_time must be before end_time"
        )
    rule.apply(changes)
    await session.flush()
    return rule


@admin_router.delete("/availability-rules/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> None:
    rule = await _get_rule(session, rule_id)
    await session.delete(rule)
    await session.flush()


@admin_router.get("/time-slots", response_model=list[SlotResponse])
async def admin_list_slots(
    day: date | None = Query(default=None, alias="date"),
    week_start: date | None = None,
    week_end: date | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[TimeSlot]:
    stmt = select(TimeSlot)
    if day is not None:
        stmt = stmt.where(TimeSlot.date == day)
    elif week_start is not None and week_end is not None:
        stmt = stmt.where(TimeSlot.date >= week_start, TimeSlot.date <= week_end)
    stmt = stmt.order_by(TimeSlot.date, TimeSlot.time)
    return list((await session.execute(stmt)).scalars().all())


@admin_router.post("/time-slots", response_model=SlotResponse, status_code=201)
async def admin_create_slot(
    body: SlotCreate,
    session: AsyncSession = Depends(get_session),
) -> TimeSlot:
    slot = TimeSlot(**body.model_dump())
    session.add(slot)
    try:
        await session.flush()
    except IntegrityError:
        raise HTTPException(
            status_code=409, detail="A time slot already exists at that date and time"
        )
    return slot


@admin_router.patch("/time-slots/{slot_id}", response_model=SlotResponse)
async def admin_update_slot(
    slot_id: UUID,
    body: SlotUpdate,
    session: AsyncSession = Depends(get_session),
) -> TimeSlot:
    slot = await _get_slot(session, slot_id)
    slot.apply(body.model_dump(exclude_unset=True, exclude_none=True))
    await session.flush()
    return slot


@admin_router.delete("/time-slots/{slot_id}", status_code=204)
async def admin_delete_slot(
    slot_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> None:
    slot = await _get_slot(session, slot_id)
    await session.delete(slot)
    await session.flush()


@admin_router.post("/time-slots/bulk")
async def admin_bulk_slots(
    body: BulkSlotChanges,
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Apply creations, edits and deletions, each one succeeding or failing alone."""
    results: dict[str, list[Any]] = {
        "new": [],
        "updated": [],
        "deleted": [],
        "errors": [],
    }

    for new_slot in body.new_slots:
        try:
            async with session.begin_nested():
                slot = TimeSlot(**new_slot.model_dump())
                session.add(slot)
            results["new"].append(slot)
        except IntegrityError as exc:
            results["errors"].append(
                {"type": "new_slot", "message": str(exc.orig)}
            )

    for edit in body.edited_slots:
        slot_or_none = await session.get(TimeSlot, edit.id)
        if slot_or_none is None:
            results["errors"].append(
                {"type": "edited_slot", "id": str(edit.id), "message": "not found"}
            )
            continue
        try:
            async with session.begin_nested():
                changes = edit.model_dump(
                    exclude={"id"}, exclude_unset=True, exclude_none=True
                )
                slot_or_none.apply(changes)
            results["updated"].append(slot_or_none)
        except IntegrityError as exc:
            await session.refresh(slot_or_none)
            results["errors"].append(
                {"type": "edited_slot", "id": str(edit.id), "message": str(exc.orig)}
            )

    if body.deleted_slot_ids:
        try:
            async with session.begin_nested():
                removed = await session.execute(
                    delete(TimeSlot)
                    .where(TimeSlot.id.in_(body.deleted_slot_ids))
                    .returning(TimeSlot.id)
                )
                deleted_ids = removed.scalars().all()
            results["deleted"] = [str(slot_id) for slot_id in deleted_ids]
        except IntegrityError as exc:
            results["errors"].append(
                {"type": "deleted_slots", "message": str(exc.orig)}
            )

    details = {
        "new": [
            SlotResponse.model_validate(s).model_dump(mode="json")
            for s in results["new"]
        ],
        "updated": [
            SlotResponse.model_validate(s).model_dump(mode="json")
            for s in results["updated"]
        ],
        "deleted": results["deleted"],
        "errors": results["errors"],
    }
    if results["errors"]:
        logger.warning("Bulk slot update had %d errors", len(results["errors"]))
        return JSONResponse(
            status_code=400,
            content={"message": "Some operations failed", "details": details},
        )
    return JSONResponse(
        content={"message": "All changes saved successfully", "details": details}
    )


@admin_router.post(
    "/time-slots/generate", response_model=list[SlotResponse], status_code=201
)
async def admin_generate_slots(
    body: GenerateSlots,
    session: AsyncSession = Depends(get_session),
) -> list[TimeSlot]:
    return await materialize_slots(
        session, body.start_date, body.end_date, SLOT_DURATION
    )
