import re
import datetime as dt
from enum import Enum
from typing import Optional
from pydantic import field_validator
from sqlmodel import Field
from .base import SyncModel

TIME_SLOT_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class Appointment(SyncModel):
    patient_id: str = Field(min_length=1)
    date: dt.date
    time_slot: str  # HH:MM
    category: str = Field(min_length=1)

    title: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED)
    location: Optional[str] = None
    notes: Optional[str] = None
    follow_up: bool = False

    @field_validator("time_slot")
    @classmethod
    def valid_time_slot(cls, value: str) -> str:
        if not TIME_SLOT_RE.match(value):
            raise ValueError("Formato de horário inválido (HH:MM)")
        return value

    @property
    def starts_at(self) -> dt.datetime:
        hour, minute = (int(part) for part in self.time_slot.split(":"))
        return dt.datetime.combine(self.date, dt.time(hour, minute), tzinfo=dt.timezone.utc)
