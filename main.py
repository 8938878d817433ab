import logging
from dataclasses import dataclass

import httpx

from gestao_clinica.config import API_BASE_URL, TIMEOUT_SECONDS
from gestao_clinica.data.appointment_repository import AppointmentRepository
from gestao_clinica.data.item_store import LocalItemStore
from gestao_clinica.data.kv_store import KVStore
from gestao_clinica.data.medical_record_repository import MedicalRecordRepository
from gestao_clinica.data.patient_repository import PatientRepository
from gestao_clinica.services.archiver import Archiver
from gestao_clinica.services.error_ledger import ErrorLedger
from gestao_clinica.services.network import NetworkMonitor, http_probe
from gestao_clinica.services.remote_client import RemoteClient
from gestao_clinica.services.sync_manager import SyncManager

logger = logging.getLogger("GestaoClinica")


@dataclass
class App:
    kv: KVStore
    store: LocalItemStore
    network: NetworkMonitor
    ledger: ErrorLedger
    sync: SyncManager
    archiver: Archiver
    patients: PatientRepository
    appointments: AppointmentRepository
    medical_records: MedicalRecordRepository


def build_app(db_path: str = None, client: httpx.Client = None) -> App:
    """Monta os serviços com dependências explícitas (sem singletons)"""
    client = client or httpx.Client(base_url=API_BASE_URL, timeout=TIMEOUT_SECONDS)

    kv = KVStore(db_path)
    store = LocalItemStore(kv)
    network = NetworkMonitor(http_probe(client))
    ledger = ErrorLedger(kv, network)
    sync = SyncManager(store, RemoteClient(client=client), network, ledger, kv)
    network.subscribe(sync.on_network_change)

    return App(
        kv=kv,
        store=store,
        network=network,
        ledger=ledger,
        sync=sync,
        archiver=Archiver(store, kv, ledger),
        patients=PatientRepository(store, ledger),
        appointments=AppointmentRepository(store, ledger),
        medical_records=MedicalRecordRepository(store, ledger),
    )


def main():
    logging.basicConfig(level=logging.INFO)
    app = build_app()

    result = app.sync.perform_sync()
    if result.ok:
        logger.info("Sync OK! ▲%d ▼%d", result.pushed, result.pulled)
    elif result.status.value == "offline":
        logger.warning("Offline. Operando localmente.")
    else:
        logger.error("Erro no sync: %s", result.errors[0] if result.errors else "?")

    archived = app.archiver.run_archiving()
    logger.info("Arquivados: %d (sucesso=%s)", archived.archived, archived.success)

    for key, stats in app.archiver.storage_stats().items():
        logger.info("%s: %s", key, stats)

    quota = app.archiver.check_storage_quota()
    if quota.critical:
        logger.error("Armazenamento local em nível crítico; revise o arquivamento")
    elif quota.needs_cleanup:
        logger.warning("Armazenamento local perto do limite")


if __name__ == "__main__":
    main()
