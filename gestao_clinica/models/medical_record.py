import datetime as dt
from typing import List, Optional
from sqlmodel import Field, SQLModel
from .base import SyncModel


class Prescription(SQLModel):
    medication: str = Field(min_length=1)
    dosage: str = Field(min_length=1)
    frequency: str = Field(min_length=1)
    duration: Optional[str] = None


class MedicalRecord(SyncModel):
    patient_id: str = Field(min_length=1)
    date: dt.date
    diagnosis: str = Field(min_length=3)
    treatment: Optional[str] = None
    notes: Optional[str] = None
    prescriptions: List[Prescription] = Field(default_factory=list)
    follow_up_date: Optional[dt.date] = None
