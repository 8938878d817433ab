from typing import List
from gestao_clinica.models.base import CollectionKey
from gestao_clinica.models.patient import Patient
from gestao_clinica.data.sync_repository import SyncRepository


class PatientRepository(SyncRepository[Patient]):
    def __init__(self, store, ledger, **kwargs):
        super().__init__(Patient, CollectionKey.PATIENTS, store, ledger, **kwargs)

    def search(self, query_text: str = "") -> List[Patient]:
        """Busca por nome, sobrenome, e-mail ou telefone"""
        patients = self.list_all()
        if not query_text:
            return sorted(patients, key=lambda p: (p.first_name.lower(), p.last_name.lower()))

        needle = query_text.lower()
        return [
            p for p in patients
            if needle in p.first_name.lower()
            or needle in p.last_name.lower()
            or (p.email and needle in p.email.lower())
            or (p.phone_number and query_text in p.phone_number)
        ]
