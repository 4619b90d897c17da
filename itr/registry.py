from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from .errors import RegistryFormatError, RegistryUnavailable
from .models import normalize_repository


_CHALLENGE_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')


def hub_path(repository: str) -> str:
    """Docker Hub API path: official images live under ``library/``."""
    name = normalize_repository(repository)
    return name if "/" in name else f"library/{name}"


def _check_status(resp: httpx.Response, source: str) -> None:
    if not (200 <= resp.status_code < 300):
        raise RegistryUnavailable(f"{source}: HTTP {resp.status_code}")


def _json_object(resp: httpx.Response, source: str) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as e:
        raise RegistryFormatError(f"{source}: invalid JSON ({e})") from e
    if not isinstance(data, dict):
        raise RegistryFormatError(f"{source}: expected a JSON object, got {type(data).__name__}")
    return data


class TagSource:
    """One way of listing the tags of a repository."""

    name = "source"

    def fetch(self, client: httpx.Client, repository: str) -> frozenset[str]:
        raise NotImplementedError


class HubTagSource(TagSource):
    """Docker Hub API: ``results[].name``, paginated through ``next``."""

    name = "hub"

    def __init__(self, base_url: str = "https://hub.docker.com", max_pages: int = 3, page_size: int = 100):
        self.base_url = base_url.rstrip("/")
        self.max_pages = max(1, int(max_pages))
        self.page_size = page_size

    def fetch(self, client: httpx.Client, repository: str) -> frozenset[str]:
        url: str | None = f"{self.base_url}/v2/repositories/{hub_path(repository)}/tags"
        params: dict[str, Any] | None = {"page_size": self.page_size}
        tags: set[str] = set()
        pages = 0
        while url and pages < self.max_pages:
            resp = client.get(url, params=params)
            _check_status(resp, self.name)
            data = _json_object(resp, self.name)
            results = data.get("results")
            if not isinstance(results, list):
                raise RegistryFormatError(f"{self.name}: missing 'results' list")
            for item in results:
                name = item.get("name") if isinstance(item, dict) else None
                if not isinstance(name, str):
                    raise RegistryFormatError(f"{self.name}: tag entry without a name: {item!r}")
                tags.add(name)
            nxt = data.get("next")
            url = nxt if isinstance(nxt, str) and nxt else None
            # "next" already carries the query string
            params = None
            pages += 1
        return frozenset(tags)


class RegistryV2TagSource(TagSource):
    """OCI distribution API: ``tags[]``, with anonymous bearer-token auth."""

    name = "registry-v2"

    def __init__(self, base_url: str = "https://registry-1.docker.io"):
        self.base_url = base_url.rstrip("/")

    def fetch(self, client: httpx.Client, repository: str) -> frozenset[str]:
        url = f"{self.base_url}/v2/{hub_path(repository)}/tags/list"
        resp = client.get(url)
        if resp.status_code == 401:
            token = self._anonymous_token(client, resp.headers.get("www-authenticate", ""))
            if token:
                resp = client.get(url, headers={"Authorization": f"Bearer {token}"})
        _check_status(resp, self.name)
        data = _json_object(resp, self.name)
        tags = data.get("tags")
        # Registries answer "tags": null for a repository without tags.
        if tags is None:
            return frozenset()
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise RegistryFormatError(f"{self.name}: 'tags' is not a list of strings")
        return frozenset(tags)

    def _anonymous_token(self, client: httpx.Client, challenge: str) -> str | None:
        scheme, _, rest = challenge.partition(" ")
        if scheme.lower() != "bearer":
            return None
        params = dict(_CHALLENGE_PARAM_RE.findall(rest))
        realm = params.pop("realm", None)
        if not realm:
            return None
        resp = client.get(realm, params=params)
        _check_status(resp, f"{self.name} auth")
        data = _json_object(resp, f"{self.name} auth")
        token = data.get("token") or data.get("access_token")
        return token if isinstance(token, str) else None


@dataclass(frozen=True)
class TagFetch:
    tags: frozenset[str]
    source: str
    failures: list[str] = field(default_factory=list)


class RegistryClient:
    """Tries each tag source in order; the first success wins."""

    def __init__(self, sources: list[TagSource], timeout_s: float = 10.0, transport: httpx.BaseTransport | None = None):
        if not sources:
            raise ValueError("RegistryClient needs at least one tag source.")
        self.sources = list(sources)
        self.timeout_s = float(timeout_s)
        self.transport = transport

    def fetch(self, repository: str) -> TagFetch:
        failures: list[str] = []
        format_only = True
        with httpx.Client(timeout=self.timeout_s, follow_redirects=True, transport=self.transport) as client:
            for source in self.sources:
                try:
                    tags = source.fetch(client, repository)
                    return TagFetch(tags=tags, source=source.name, failures=failures)
                except RegistryFormatError as e:
                    failures.append(str(e))
                except RegistryUnavailable as e:
                    format_only = False
                    failures.append(str(e))
                except httpx.TimeoutException:
                    format_only = False
                    failures.append(f"{source.name}: timed out after {self.timeout_s:g}s")
                except (httpx.HTTPError, httpx.InvalidURL) as e:
                    # InvalidURL: a malformed "next" link or auth realm
                    format_only = False
                    failures.append(f"{source.name}: {type(e).__name__}: {e}")

        detail = "; ".join(failures)
        if format_only:
            raise RegistryFormatError(f"Unexpected registry response for {repository}: {detail}", failures)
        raise RegistryUnavailable(f"Registry unavailable for {repository}: {detail}", failures)

    def fetch_tags(self, repository: str) -> frozenset[str]:
        return self.fetch(repository).tags


def default_client(
    hub_url: str = "https://hub.docker.com",
    registry_url: str = "https://registry-1.docker.io",
    hub_max_pages: int = 3,
    timeout_s: float = 10.0,
    transport: httpx.BaseTransport | None = None,
) -> RegistryClient:
    """Docker Hub API first, the registry v2 API as the alternate."""
    return RegistryClient(
        [HubTagSource(hub_url, max_pages=hub_max_pages), RegistryV2TagSource(registry_url)],
        timeout_s=timeout_s,
        transport=transport,
    )
