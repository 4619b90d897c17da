from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field, computed_field


TAG_PATTERN = r"^[A-Za-z0-9_][A-Za-z0-9_.\-]{0,127}$"
REPOSITORY_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._/:\-]{0,254}$"

TAG_RE = re.compile(TAG_PATTERN)


def validate_tag(tag: str) -> None:
    if not TAG_RE.fullmatch(tag):
        raise ValueError(f"Invalid image tag {tag!r}. Use letters/numbers and -._ (max 128 chars).")


_HUB_PREFIXES = ("docker.io/", "index.docker.io/", "registry-1.docker.io/", "registry.hub.docker.com/")


def normalize_repository(name: str) -> str:
    """Canonical Docker Hub name, so that nginx == library/nginx == docker.io/library/nginx."""
    for prefix in _HUB_PREFIXES:
        if name.startswith(prefix):
            name = name[len(prefix):]
            break
    if name.startswith("library/"):
        name = name[len("library/"):]
    return name


class PatchStatus(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"


class VersionSource(str, Enum):
    REGISTRY = "registry"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ImageReference:
    repository: str
    version: str | None = None

    def __post_init__(self) -> None:
        if self.version is not None:
            validate_tag(self.version)

    def __str__(self) -> str:
        if self.version is None:
            return self.repository
        return f"{self.repository}:{self.version}"


@dataclass(frozen=True)
class PatchResult:
    status: PatchStatus
    content: str
    old_version: str | None = None
    new_version: str | None = None

    @property
    def changed(self) -> bool:
        return self.status is PatchStatus.UPDATED


class ReconcileConfig(BaseModel):
    repository: str = Field(..., pattern=REPOSITORY_PATTERN, description="Image repository, e.g. nginx")
    manifest_path: str = Field(..., min_length=1, description="Path of the YAML manifest to patch")
    image_key: str = Field("image", pattern=r"^[A-Za-z0-9_.\-]+$", description="Field key holding the image reference")
    fallback_version: str = Field(..., pattern=TAG_PATTERN, description="Tag used when the registry gives no answer")


class PatchSummary(BaseModel):
    status: PatchStatus
    old_version: str | None = None
    new_version: str | None = None


class UpdateOutcome(BaseModel):
    repository: str
    manifest_path: str
    selected_version: str
    source: VersionSource
    fallback_reason: str | None = None
    patch: PatchSummary
    trail: list[str] = Field(default_factory=list)
    started_at: str
    finished_at: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def changed(self) -> bool:
        return self.patch.status is PatchStatus.UPDATED
