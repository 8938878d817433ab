import datetime as dt
from typing import Dict, Iterable, List

from gestao_clinica.errors import SlotUnavailable
from gestao_clinica.models.appointment import Appointment, AppointmentStatus
from gestao_clinica.models.base import CollectionKey
from gestao_clinica.data.sync_repository import SyncRepository


class AppointmentRepository(SyncRepository[Appointment]):
    def __init__(self, store, ledger, **kwargs):
        super().__init__(Appointment, CollectionKey.APPOINTMENTS, store, ledger, **kwargs)

    def by_date(self, day: dt.date) -> List[Appointment]:
        appointments = [a for a in self.list_all() if a.date == day]
        return sorted(appointments, key=lambda a: a.starts_at)

    def upcoming(self, limit: int = 10) -> List[Appointment]:
        now = self.clock()
        scheduled = [
            a for a in self.list_all()
            if a.status == AppointmentStatus.SCHEDULED and a.starts_at >= now
        ]
        return sorted(scheduled, key=lambda a: a.starts_at)[:limit]

    def _booked(self, day: dt.date, category: str, time_slot: str) -> int:
        # Consultas canceladas liberam a vaga
        return sum(
            1 for a in self.list_all()
            if a.date == day and a.category == category and a.time_slot == time_slot
            and a.status != AppointmentStatus.CANCELLED
        )

    def available_slots(self, day: dt.date, category: str, time_slots: Iterable[str],
                        max_patients: int) -> Dict[str, int]:
        """Vagas livres por horário: {"08:00": 2, "08:30": 0, ...}"""
        return {
            slot: max(0, max_patients - self._booked(day, category, slot))
            for slot in time_slots
        }

    def book(self, patient_id: str, day: dt.date, time_slot: str, category: str,
             max_patients: int, **extra) -> Appointment:
        if self._booked(day, category, time_slot) >= max_patients:
            raise SlotUnavailable(f"Horário {day.isoformat()} {time_slot} ({category}) lotado")
        return self.create({
            **extra,
            "patient_id": patient_id,
            "date": day,
            "time_slot": time_slot,
            "category": category,
            "status": AppointmentStatus.SCHEDULED,
        })

    def cancel(self, appointment_id: str) -> Appointment:
        return self.update(appointment_id, {"status": AppointmentStatus.CANCELLED})
