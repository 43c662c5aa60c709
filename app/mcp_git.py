"""Git history for note mutations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from dulwich import porcelain
from dulwich.repo import Repo

from app.errors import McpError

logger = logging.getLogger(__name__)


def _ensure_git_repo(journal_root: Path) -> Repo:
    git_dir = journal_root / ".git"
    try:
        if git_dir.exists():
            return Repo(journal_root)
        journal_root.mkdir(parents=True, exist_ok=True)
        return porcelain.init(journal_root)
    except Exception as exc:
        raise McpError(
            "GIT_ERROR",
            "Git repository could not be initialized.",
            {"path": str(journal_root)},
        ) from exc


def _commit_note_changes(
    repo: Repo,
    notes: Sequence[str],
    operation: str,
    target: str,
) -> str:
    repo.get_worktree().stage(list(notes))
    commit_message = f"{operation}: {target}"
    commit_sha = porcelain.commit(repo, message=commit_message)
    if isinstance(commit_sha, bytes):
        return commit_sha.decode("ascii")
    return str(commit_sha)


def _record_history(
    journal_root: Path, notes: Sequence[str], operation: str, target: str
) -> str | None:
    """Commit already-written notes; failures are logged, never raised.

    Note writes are not undone when the commit fails.
    """
    if not notes:
        return None
    try:
        repo = _ensure_git_repo(journal_root)
        return _commit_note_changes(repo, notes, operation, target)
    except Exception:
        logger.exception("Git commit for %s failed", operation)
        return None
