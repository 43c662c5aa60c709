"""Per-application wiring of the note store, task cache and helpers."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable

from fastapi import Request

from app.config import AppConfig
from app.errors import McpError
from app.note_store import DailyNoteCreator, FileNoteStore
from app.task_model import MarkerToggler
from app.task_rollover import RolloverOrchestrator
from app.task_scanner import TaskScanCache


@dataclass
class JournalServices:
    config: AppConfig
    store: FileNoteStore
    note_creator: DailyNoteCreator
    cache: TaskScanCache
    toggler: MarkerToggler
    today: Callable[[], date] = date.today
    journal_folder: str = ""
    rollover_lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def journal_root(self) -> Path:
        return self.store.root

    def rollover(self) -> RolloverOrchestrator:
        return RolloverOrchestrator(
            self.cache, self.store, self.note_creator, today=self.today
        )

    def set_journal_folder(self, folder: str) -> Path:
        root = self.config.workspace_path / folder
        self.cache.set_root(root)
        self.toggler.forget()
        self.journal_folder = folder
        return root


def build_services(
    config: AppConfig, *, today: Callable[[], date] = date.today
) -> JournalServices:
    store = FileNoteStore(config.journal_path)
    cache = TaskScanCache(
        store,
        staleness_seconds=config.task_cache_timeout,
        wait_timeout_seconds=config.scan_wait_timeout,
        batch_size=config.scan_batch_size,
        batch_pause_seconds=config.scan_batch_pause,
    )
    # Saves made through the store invalidate that note's cached tasks.
    store.subscribe(cache.invalidate_file)
    return JournalServices(
        config=config,
        store=store,
        note_creator=DailyNoteCreator(store),
        cache=cache,
        toggler=MarkerToggler(),
        today=today,
        journal_folder=config.journal_folder,
    )


def get_services(request: Request) -> JournalServices:
    """Return the request's services, refusing to run without a workspace."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise McpError(
            "JOURNAL_NOT_CONFIGURED",
            "The journal service has not been configured.",
        )
    workspace = services.config.workspace_path
    if not workspace.is_dir():
        raise McpError(
            "JOURNAL_NOT_CONFIGURED",
            "The configured workspace does not exist.",
            {"path": str(workspace)},
        )
    return services
