"""
Pytest config.

`import manager_api` relies on the repo root being on sys.path when the
project is not installed. We pin the behavior here so tests can always
import the local package.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


@pytest.fixture(autouse=True)
def _reset_auth_caches() -> Iterator[None]:
    """Config and discovery are process-wide caches; isolate them per test."""
    from manager_api.auth import oidc
    from manager_api.auth.config import load_auth_config

    load_auth_config.cache_clear()
    oidc._discovery_cache.clear()
    yield
    load_auth_config.cache_clear()
    oidc._discovery_cache.clear()
