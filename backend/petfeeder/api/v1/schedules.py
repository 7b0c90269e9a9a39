# backend/petfeeder/api/v1/schedules.py

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from petfeeder.api.deps import get_db
from petfeeder.schemas.schedule import ScheduleCreate, ScheduleOut, ScheduleUpdate
from petfeeder.services import schedules_service

router = APIRouter(prefix="/schedules", tags=["schedules"])


@router.post("/", response_model=ScheduleOut, status_code=status.HTTP_201_CREATED)
def create_schedule_endpoint(
    data: ScheduleCreate,
    db: Session = Depends(get_db),
):
    return schedules_service.create_schedule(db, data)


@router.get("/", response_model=List[ScheduleOut])
def list_schedules_endpoint(
    user_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return schedules_service.list_schedules(db, user_id=user_id)


@router.get("/{schedule_id}", response_model=ScheduleOut)
def get_schedule_endpoint(
    schedule_id: int,
    db: Session = Depends(get_db),
):
    schedule = schedules_service.get_schedule_by_id(db, schedule_id)
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return schedule


@router.patch("/{schedule_id}", response_model=ScheduleOut)
def update_schedule_endpoint(
    schedule_id: int,
    data: ScheduleUpdate,
    db: Session = Depends(get_db),
):
    schedule = schedules_service.get_schedule_by_id(db, schedule_id)
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return schedules_service.update_schedule(db, schedule, data)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule_endpoint(
    schedule_id: int,
    db: Session = Depends(get_db),
):
    schedule = schedules_service.get_schedule_by_id(db, schedule_id)
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found")
    schedules_service.delete_schedule(db, schedule)
    return
