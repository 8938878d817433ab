from typing import List
from gestao_clinica.models.base import CollectionKey
from gestao_clinica.models.medical_record import MedicalRecord
from gestao_clinica.data.sync_repository import SyncRepository


class MedicalRecordRepository(SyncRepository[MedicalRecord]):
    def __init__(self, store, ledger, **kwargs):
        super().__init__(MedicalRecord, CollectionKey.MEDICAL_RECORDS, store, ledger, **kwargs)

    def for_patient(self, patient_id: str) -> List[MedicalRecord]:
        """Prontuário do paciente, mais recente primeiro"""
        records = [r for r in self.list_all() if r.patient_id == patient_id]
        return sorted(records, key=lambda r: r.date, reverse=True)
