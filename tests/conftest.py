from __future__ import annotations

import os
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

JANUS_URL = "http://janus.test"
CONFIG_SERVICE_URL = "http://config.test"


@pytest.fixture(scope="session")
def app(tmp_path_factory: pytest.TempPathFactory):
    tmp_dir = tmp_path_factory.mktemp("runtime")
    static_dir = tmp_dir / "public"
    static_dir.mkdir()
    (static_dir / "index.html").write_text("<html><body>SIP phone</body></html>", encoding="utf-8")

    # Must be set before importing modules that read settings.
    os.environ["SIP_RELAY_ENABLED"] = "false"
    os.environ["JANUS_API_URL"] = JANUS_URL
    os.environ["CONFIG_SERVICE_URL"] = CONFIG_SERVICE_URL
    os.environ["STATIC_DIR"] = str(static_dir)
    os.environ["SIP_CLIENT_SERVER"] = "sip.example.com"

    import importlib

    # Ensure clean import with the test settings.
    for module_name in [
        "config.settings",
        "api.dependencies",
        "api.routes",
        "api.janus_routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def mock_upstream(app):
    """Route the gateway's outgoing HTTP calls to a handler installed by the test."""

    import api.dependencies as deps

    def install(handler) -> None:
        async def _client():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                yield client

        app.dependency_overrides[deps.get_http_client] = _client
        app.dependency_overrides[deps.get_janus_client] = _client

    return install
