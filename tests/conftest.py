from __future__ import annotations

import os
import tempfile
from pathlib import Path

# The local store opens its sqlite file at import time
_TMP = Path(tempfile.mkdtemp(prefix="aql-tests-"))
os.environ.setdefault("AQL_LOCAL_DB", str(_TMP / "aql_local.db"))

import httpx
import pytest

from aql.backend import BackendClient, BackendConfig
from aql.metrics import ReportingClient
from aql.settings import settings


BACKEND_URL = "http://backend.test"
API_URL = "http://api.test/api"


@pytest.fixture(autouse=True)
def artifacts_dir(tmp_path: Path):
    previous = settings.artifacts_base_dir
    settings.artifacts_base_dir = str(tmp_path / "artifacts")
    yield tmp_path / "artifacts"
    settings.artifacts_base_dir = previous


@pytest.fixture
def make_backend():
    def make(handler) -> BackendClient:
        http = httpx.AsyncClient(base_url=BACKEND_URL, transport=httpx.MockTransport(handler))
        return BackendClient(BackendConfig(url=BACKEND_URL, key="anon-key"), client=http)

    return make


@pytest.fixture
def make_reporting():
    def make(handler) -> ReportingClient:
        http = httpx.AsyncClient(base_url=API_URL, transport=httpx.MockTransport(handler))
        return ReportingClient(base_url=API_URL, client=http)

    return make


def offline(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("network is unreachable", request=request)


@pytest.fixture
def offline_handler():
    return offline
