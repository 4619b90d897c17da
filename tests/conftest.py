import io
import os as _os
import sys

import httpx
import pytest

# Ensure project root is importable (so `import cli` / `import itr` work without installing)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from itr.db import EventLog  # noqa: E402
from itr.registry import default_client  # noqa: E402


HUB_HOST = "hub.docker.com"
V2_HOST = "registry-1.docker.io"


def hub_page(names, next_url=None):
    return {"count": len(names), "next": next_url, "previous": None, "results": [{"name": n} for n in names]}


@pytest.fixture
def make_registry():
    """Build the default two-source client on top of an httpx.MockTransport handler."""

    def _make(handler, **kwargs):
        return default_client(transport=httpx.MockTransport(handler), **kwargs)

    return _make


@pytest.fixture
def hub_tags(make_registry):
    """Registry whose primary endpoint answers with the given tag names."""

    def _make(names):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == HUB_HOST:
                return httpx.Response(200, json=hub_page(names))
            return httpx.Response(404)

        return make_registry(handler)

    return _make


@pytest.fixture
def unreachable_registry(make_registry):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return make_registry(handler)


@pytest.fixture
def quiet_log():
    return EventLog(stream=io.StringIO())


@pytest.fixture
def write_manifest_file(tmp_path):
    def _write(content: str, name: str = "deployment.yaml") -> str:
        path = tmp_path / name
        path.write_bytes(content.encode("utf-8"))
        return str(path)

    return _write
