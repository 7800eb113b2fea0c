"""
Pytest config.

Tests import the local `tzwebhook/` package and `main.py`; pin the repo root on sys.path so
that works with a global `pytest` entrypoint even when the project isn't installed.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


@pytest.fixture(autouse=True)
def _reset_cached_config() -> None:
    """
    Env-driven config is cached (`lru_cache`) and the webhook app keeps its engine on
    `app.state`. Reset both around every test so env monkeypatching takes effect.
    """
    from tzwebhook.api.webhook import app
    from tzwebhook.config import load_webhook_config

    load_webhook_config.cache_clear()
    app.state.engine = None
    yield
    load_webhook_config.cache_clear()
    app.state.engine = None


@pytest.fixture
def mount():
    from tzwebhook.core.models import MountDescriptor

    return MountDescriptor(name="local-tz", host_path="/usr/share/zoneinfo/Asia/Shanghai", mount_path="/etc/localtime")
