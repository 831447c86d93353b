from livequiz.core.config import Settings, settings
from livequiz.services.coordinator import SessionCoordinator
from livequiz.services.registry import ConnectionRegistry
from livequiz.services.sessions import SessionTable
from livequiz.services.store import MemoryRecordStore, RecordStore, SqlRecordStore


def build_store(config: Settings = settings) -> RecordStore:
    if not config.uses_database:
        return MemoryRecordStore()
    from livequiz.db import get_session

    return SqlRecordStore(get_session)


def build_coordinator(store: RecordStore, config: Settings = settings) -> SessionCoordinator:
    return SessionCoordinator(store, SessionTable(), ConnectionRegistry(), settings=config)


record_store = build_store()
coordinator = build_coordinator(record_store)


def get_store() -> RecordStore:
    return record_store


def get_coordinator() -> SessionCoordinator:
    return coordinator
