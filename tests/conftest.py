from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from app.config import AppConfig
from app.services import build_services

from fakes import FakeNoteStore, ManualClock


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def fake_store() -> FakeNoteStore:
    return FakeNoteStore()


@pytest.fixture()
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        workspace_path=tmp_path,
        journal_folder="Journal",
        task_cache_timeout=30.0,
        scan_wait_timeout=5.0,
        scan_batch_size=20,
        scan_batch_pause=0.0,
        git_history=False,
        service_token=None,
        log_dir=None,
    )


@pytest.fixture()
def journal_request(app_config):
    """A stand-in request whose services think today is 2024-01-15."""
    services = build_services(app_config, today=lambda: date(2024, 1, 15))
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(services=services)))
