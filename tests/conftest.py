"""
Shared test fixtures for the Tessera test suite.
"""

from typing import List, Optional

import pytest

from tessera.application import Application
from tessera.config import TesseraConfig
from tessera.di.core import Container
from tessera.modules.loader import ModuleLoader
from tessera.routing.router import Router


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = [
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or [])
    ]
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "query_string": query_string.encode("latin-1"),
        "headers": raw_headers,
    }


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def container() -> Container:
    return Container()


@pytest.fixture
def router() -> Router:
    return Router()


@pytest.fixture
def loader(container, router) -> ModuleLoader:
    return ModuleLoader(container, router)


@pytest.fixture
def app() -> Application:
    return Application(TesseraConfig())


@pytest.fixture
def debug_app() -> Application:
    return Application(TesseraConfig(debug=True))
