"""
Fixtures compartilhadas: KV em memória, relógio fixo, rede controlável e
servidor de sync fake.
"""

from datetime import datetime, timedelta, timezone

import pytest

from gestao_clinica.data.appointment_repository import AppointmentRepository
from gestao_clinica.data.item_store import LocalItemStore
from gestao_clinica.data.medical_record_repository import MedicalRecordRepository
from gestao_clinica.data.patient_repository import PatientRepository
from gestao_clinica.services.archiver import Archiver
from gestao_clinica.services.error_ledger import ErrorLedger
from gestao_clinica.services.network import NetworkMonitor
from gestao_clinica.services.remote_client import RemoteClient
from gestao_clinica.services.sync_manager import SyncManager
from tests.fake_kv import FakeKVStore
from tests.fake_remote import FakeSyncServer

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class Connectivity:
    """Probe de rede controlado pelo teste"""

    def __init__(self, online=True):
        self.online = online
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.online


def make_item(item_id, days_ago=0, synced=True, deleted=False, **fields):
    ts = (NOW - timedelta(days=days_ago)).isoformat()
    return {
        "id": item_id,
        "created_at": ts,
        "updated_at": ts,
        "is_synced": synced,
        "is_deleted": deleted,
        "sync_state": "SYNCED" if synced else "PENDING_SYNC",
        **fields,
    }


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def kv():
    return FakeKVStore()


@pytest.fixture
def store(kv, clock):
    return LocalItemStore(kv, clock=clock)


@pytest.fixture
def connectivity():
    return Connectivity()


@pytest.fixture
def network(connectivity):
    return NetworkMonitor(connectivity)


@pytest.fixture
def ledger(kv, network):
    return ErrorLedger(kv, network, max_size=100)


@pytest.fixture
def server():
    return FakeSyncServer()


@pytest.fixture
def sync_manager(store, server, network, ledger, kv):
    return SyncManager(store, RemoteClient(client=server.client()), network, ledger, kv)


@pytest.fixture
def archiver(store, kv, ledger, clock):
    return Archiver(store, kv, ledger, clock=clock)


@pytest.fixture
def patients(store, ledger, clock):
    return PatientRepository(store, ledger, clock=clock)


@pytest.fixture
def appointments(store, ledger, clock):
    return AppointmentRepository(store, ledger, clock=clock)


@pytest.fixture
def medical_records(store, ledger, clock):
    return MedicalRecordRepository(store, ledger, clock=clock)
