import sys

import pytest

from netlogger.common import logging_setup
from netlogger.common.state import SharedState
from netlogger.services.storage.local_db import LocalStore

from .helpers import FakeSink, Rig


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "netlogger.db")


@pytest.fixture
def state(tmp_path):
    return SharedState(tmp_path / "state")


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
async def rig(store, sink):
    rig = Rig(store, sink)
    yield rig
    await rig.close()


@pytest.fixture
def service_logs(monkeypatch):
    """Undo configure_service_logs() calls made by the test"""
    monkeypatch.delenv("NETLOGGER_LOG_FORMAT", raising=False)
    monkeypatch.setattr(logging_setup, "_overrides", {})
    yield
    logging_setup.configure_service_logs("INFO", sys.stdout)
