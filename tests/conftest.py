"""Pytest configuration.

Adds the repo's `backend/` directory to `sys.path` so tests can import modules
like `services.log_service` and `api.main` the same way the service does when
it runs from `backend/`.
"""

from __future__ import annotations

import sys
from pathlib import Path


def pytest_configure() -> None:
    """Configure pytest before collecting/running tests."""
    backend_dir = Path(__file__).resolve().parents[1] / "backend"
    backend_dir_str = str(backend_dir)
    if backend_dir_str not in sys.path:
        sys.path.insert(0, backend_dir_str)
