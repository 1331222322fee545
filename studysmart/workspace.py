"""Data root and path helpers for StudySmart."""

from __future__ import annotations

import os
from pathlib import Path


def data_root() -> Path:
    """Directory holding settings, the task database and the profile."""
    return Path(
        os.environ.get("STUDYSMART_ROOT", str(Path.home() / "studysmart"))
    ).expanduser().resolve()


# ── Path helpers ──────────────────────────────────────────────

def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = data_root()
    return root / "settings.yaml"


def database_path(root: Path | None = None) -> Path:
    if root is None:
        root = data_root()
    return root / "study-smart.db"


def tasks_path(root: Path | None = None) -> Path:
    if root is None:
        root = data_root()
    return root / "store" / "tasks.json"


def discipline_logs_path(root: Path | None = None) -> Path:
    if root is None:
        root = data_root()
    return root / "store" / "discipline_logs.json"


def profile_path(root: Path | None = None) -> Path:
    if root is None:
        root = data_root()
    return root / "store" / "user_profile.json"


def watermark_path(root: Path | None = None) -> Path:
    if root is None:
        root = data_root()
    return root / "store" / "last_discipline_evaluation.json"
