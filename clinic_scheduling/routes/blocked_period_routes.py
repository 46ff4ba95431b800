from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from clinic_scheduling.auth.dependencies import get_current_caller
from clinic_scheduling.auth.permissions import CallerContext
from clinic_scheduling.routes.common import (
    ensure_database_ready,
    get_db,
    get_orchestrator,
    to_clinic_time,
    translate_errors,
)
from clinic_scheduling.scheduling.booking import BookingOrchestrator

router = APIRouter(tags=['blocked-periods'])


class CreateBlockedPeriodRequest(BaseModel):
    dentist_id: int
    start_time: datetime
    end_time: datetime
    reason: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: datetime) -> datetime:
        return to_clinic_time(value)

    @model_validator(mode='after')
    def validate_interval(self) -> 'CreateBlockedPeriodRequest':
        if self.end_time <= self.start_time:
            raise ValueError('A blocked period must end after it starts.')
        return self


class BlockedPeriodResponse(BaseModel):
    id: int
    dentist_id: int
    start_time: datetime
    end_time: datetime
    reason: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


@router.post('', response_model=BlockedPeriodResponse, status_code=status.HTTP_201_CREATED)
def create_blocked_period(
    data: CreateBlockedPeriodRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    booking: BookingOrchestrator = Depends(get_orchestrator),
):
    ensure_database_ready()

    with translate_errors(db):
        blocked_period = booking.block_period(
            db,
            caller,
            dentist_id=data.dentist_id,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
        )
        return BlockedPeriodResponse.model_validate(blocked_period)


@router.delete('/{blocked_period_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_blocked_period(
    blocked_period_id: int,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    booking: BookingOrchestrator = Depends(get_orchestrator),
):
    ensure_database_ready()

    with translate_errors(db):
        booking.unblock_period(db, caller, blocked_period_id)
