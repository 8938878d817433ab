"""
Repositórios de domínio: validação via modelos, estados de sync nas
mutações, paginação, busca e agenda com lotação por horário.
"""

import datetime as dt

import pytest

from gestao_clinica.errors import RecordNotFound, SlotUnavailable, ValidationFailed
from gestao_clinica.models.appointment import AppointmentStatus
from gestao_clinica.models.base import CollectionKey, SyncState
from gestao_clinica.models.errors import ErrorType

DAY = dt.date(2026, 10, 20)


def patient_data(**overrides):
    data = {
        "first_name": "Maria",
        "last_name": "Silva",
        "date_of_birth": "1985-03-12",
        "gender": "female",
    }
    data.update(overrides)
    return data


class TestPatientRepository:
    def test_create_starts_local_only(self, patients, store):
        patient = patients.create(patient_data(email="maria@example.com"))

        stored = store.get_by_id(CollectionKey.PATIENTS, patient.id)
        assert stored["first_name"] == "Maria"
        assert stored["sync_state"] == SyncState.LOCAL_ONLY.value
        assert stored["is_synced"] is False
        assert patient.full_name == "Maria Silva"

    @pytest.mark.parametrize("overrides", [
        {"first_name": "M"},
        {"email": "sem-arroba"},
        {"phone_number": "abc"},
        {"date_of_birth": "2999-01-01"},
        {"address": "Rua A, 10"},
        {"gender": "desconhecido"},
    ])
    def test_invalid_data_rejected_and_logged(self, patients, store, ledger, overrides):
        with pytest.raises(ValidationFailed) as exc:
            patients.create(patient_data(**overrides))

        assert exc.value.errors
        assert store.count(CollectionKey.PATIENTS) == 0
        assert ledger.get_errors()[0].type == ErrorType.VALIDATION

    def test_address_with_city_is_valid(self, patients):
        patient = patients.create(patient_data(address="Rua A, 10", city="Recife"))
        assert patient.city == "Recife"

    def test_update_of_unsent_record_stays_local_only(self, patients, clock):
        patient = patients.create(patient_data())
        clock.advance(minutes=1)

        updated = patients.update(patient.id, {"notes": "Hipertensa"})

        assert updated.notes == "Hipertensa"
        assert updated.sync_state == SyncState.LOCAL_ONLY
        assert updated.updated_at > patient.updated_at

    def test_update_of_synced_record_becomes_pending(self, patients, store):
        patient = patients.create(patient_data())
        store.set_sync_state(CollectionKey.PATIENTS, patient.id, SyncState.SYNCED)

        updated = patients.update(patient.id, {"city": "Olinda"})

        assert updated.sync_state == SyncState.PENDING_SYNC
        assert store.pending(CollectionKey.PATIENTS)[0]["id"] == patient.id

    def test_update_ignores_protected_fields(self, patients):
        patient = patients.create(patient_data())
        updated = patients.update(patient.id, {"id": "outro", "is_synced": True, "last_name": "Souza"})
        assert updated.id == patient.id
        assert updated.is_synced is False
        assert updated.last_name == "Souza"

    def test_update_missing_record(self, patients):
        with pytest.raises(RecordNotFound):
            patients.update("nao-existe", {"notes": "x"})

    def test_invalid_update_leaves_record_untouched(self, patients):
        patient = patients.create(patient_data())
        with pytest.raises(ValidationFailed):
            patients.update(patient.id, {"first_name": ""})
        assert patients.get_by_id(patient.id).first_name == "Maria"

    def test_soft_and_hard_delete(self, patients, store):
        a = patients.create(patient_data())
        b = patients.create(patient_data(first_name="Joana"))

        assert patients.delete(a.id) is True
        assert patients.get_by_id(a.id) is None
        assert store.get_by_id(CollectionKey.PATIENTS, a.id, include_deleted=True)["is_deleted"] is True

        assert patients.delete(b.id, hard=True) is True
        assert store.get_by_id(CollectionKey.PATIENTS, b.id, include_deleted=True) is None

    def test_search(self, patients):
        patients.create(patient_data(first_name="Ana", last_name="Costa", phone_number="+55 81 9999-0000"))
        patients.create(patient_data(first_name="Bruno", last_name="Lima", email="bruno@clinica.org"))

        assert [p.first_name for p in patients.search("cost")] == ["Ana"]
        assert [p.first_name for p in patients.search("CLINICA")] == ["Bruno"]
        assert [p.first_name for p in patients.search("9999")] == ["Ana"]
        assert [p.first_name for p in patients.search()] == ["Ana", "Bruno"]


class TestPagination:
    @pytest.fixture
    def five_patients(self, patients):
        names = ["Carla", "Ana", "Eva", "Bia", "Duda"]
        return [patients.create(patient_data(first_name=n)) for n in names]

    def test_pages(self, patients, five_patients):
        page = patients.paginate(page=3, limit=2, sort_by="first_name")

        assert [p.first_name for p in page.items] == ["Eva"]
        assert page.total == 5
        assert page.total_pages == 3
        assert page.has_next_page is False
        assert page.has_prev_page is True

    def test_descending_with_missing_values_last(self, patients, five_patients):
        patients.update(five_patients[0].id, {"city": "Recife"})
        patients.update(five_patients[1].id, {"city": "Olinda"})

        page = patients.paginate(limit=5, sort_by="city", descending=True)

        assert [p.first_name for p in page.items[:2]] == ["Carla", "Ana"]
        assert all(p.city is None for p in page.items[2:])

    def test_filters(self, patients, five_patients):
        patients.create(patient_data(first_name="Rui", gender="male"))
        page = patients.paginate(filters={"gender": "male"})
        assert [p.first_name for p in page.items] == ["Rui"]

    def test_invalid_page(self, patients):
        with pytest.raises(ValueError):
            patients.paginate(page=0)


class TestAppointmentRepository:
    SLOTS = ["08:00", "08:30", "09:00"]

    def test_available_slots(self, appointments):
        appointments.book("p1", DAY, "08:00", "clinica-geral", max_patients=2)

        free = appointments.available_slots(DAY, "clinica-geral", self.SLOTS, max_patients=2)

        assert free == {"08:00": 1, "08:30": 2, "09:00": 2}

    def test_booking_full_slot_fails(self, appointments):
        appointments.book("p1", DAY, "08:00", "pediatria", max_patients=1)
        with pytest.raises(SlotUnavailable):
            appointments.book("p2", DAY, "08:00", "pediatria", max_patients=1)

    def test_slots_are_per_category_and_day(self, appointments):
        appointments.book("p1", DAY, "08:00", "pediatria", max_patients=1)
        appointments.book("p2", DAY, "08:00", "odontologia", max_patients=1)
        appointments.book("p3", DAY + dt.timedelta(days=1), "08:00", "pediatria", max_patients=1)

        assert appointments.available_slots(DAY, "pediatria", ["08:00"], 1) == {"08:00": 0}
        assert len(appointments.list_all()) == 3

    def test_cancel_frees_slot(self, appointments):
        booked = appointments.book("p1", DAY, "08:00", "pediatria", max_patients=1)

        cancelled = appointments.cancel(booked.id)

        assert cancelled.status == AppointmentStatus.CANCELLED
        appointments.book("p2", DAY, "08:00", "pediatria", max_patients=1)

    def test_invalid_time_slot(self, appointments):
        with pytest.raises(ValidationFailed):
            appointments.book("p1", DAY, "25:00", "pediatria", max_patients=1)

    def test_by_date_sorted_by_time(self, appointments):
        appointments.book("p1", DAY, "09:00", "pediatria", max_patients=5)
        appointments.book("p2", DAY, "08:00", "pediatria", max_patients=5)
        appointments.book("p3", DAY + dt.timedelta(days=1), "07:00", "pediatria", max_patients=5)

        assert [a.patient_id for a in appointments.by_date(DAY)] == ["p2", "p1"]

    def test_upcoming_skips_past_and_cancelled(self, appointments):
        past = dt.date(2026, 10, 1)
        appointments.book("passado", past, "08:00", "pediatria", max_patients=5)
        later = appointments.book("cancelado", DAY, "08:00", "pediatria", max_patients=5)
        appointments.cancel(later.id)
        appointments.book("futuro", DAY, "10:00", "pediatria", max_patients=5)

        assert [a.patient_id for a in appointments.upcoming()] == ["futuro"]


class TestMedicalRecordRepository:
    def test_for_patient_newest_first(self, medical_records):
        medical_records.create({"patient_id": "p1", "date": "2026-01-10", "diagnosis": "Gripe"})
        medical_records.create({"patient_id": "p1", "date": "2026-05-02", "diagnosis": "Dengue",
                                "prescriptions": [{"medication": "Paracetamol", "dosage": "500mg",
                                                   "frequency": "8/8h"}]})
        medical_records.create({"patient_id": "p2", "date": "2026-03-01", "diagnosis": "Asma"})

        records = medical_records.for_patient("p1")

        assert [r.diagnosis for r in records] == ["Dengue", "Gripe"]
        assert records[0].prescriptions[0].medication == "Paracetamol"

    def test_short_diagnosis_rejected(self, medical_records):
        with pytest.raises(ValidationFailed):
            medical_records.create({"patient_id": "p1", "date": "2026-01-10", "diagnosis": "ok"})


class TestInvalidStoredRecords:
    """Registros que chegaram pelo pull sem passar pelos modelos"""

    @pytest.fixture
    def bad_patient(self, store):
        store.put(CollectionKey.PATIENTS, {
            "id": "remoto-1", "first_name": "A", "last_name": "Silva",
            "date_of_birth": "1990-01-01", "gender": "female",
            "is_deleted": False, "is_synced": True, "sync_state": "SYNCED",
        })
        return "remoto-1"

    def test_list_and_search_skip_invalid_record(self, patients, bad_patient, ledger):
        patients.create(patient_data(first_name="Ana"))

        assert [p.first_name for p in patients.list_all()] == ["Ana"]
        assert [p.first_name for p in patients.search("silva")] == ["Ana"]

        error = ledger.get_errors()[0]
        assert error.type == ErrorType.VALIDATION
        assert error.severity.value == "WARNING"
        assert error.details["id"] == bad_patient

    def test_get_by_id_returns_none_for_invalid_record(self, patients, bad_patient):
        assert patients.get_by_id(bad_patient) is None

    def test_paginate_counts_only_valid_records(self, patients, bad_patient):
        patients.create(patient_data(first_name="Ana"))
        patients.create(patient_data(first_name="Bia"))

        page = patients.paginate(limit=10, sort_by="first_name")

        assert [p.first_name for p in page.items] == ["Ana", "Bia"]
        assert page.total == 2

    def test_slots_ignore_invalid_appointment(self, appointments, store):
        store.put(CollectionKey.APPOINTMENTS, {
            "id": "remoto-2", "patient_id": "p9", "date": DAY.isoformat(),
            "time_slot": "8h", "category": "pediatria", "is_deleted": False,
        })

        free = appointments.available_slots(DAY, "pediatria", ["08:00"], max_patients=1)

        assert free == {"08:00": 1}
