"""In-place patching of image references in YAML manifests.

The document is never parsed and re-serialized: the image field is found with
a line-oriented pattern and only the tag substring is replaced, so comments,
quoting, indentation and line endings survive untouched.
"""
from __future__ import annotations

import os
import re
import shutil
import tempfile

from .errors import ManifestFieldNotFound, ManifestReadError, ManifestWriteError
from .models import ImageReference, PatchResult, PatchStatus, normalize_repository, validate_tag


def _field_re(image_key: str) -> re.Pattern[str]:
    # <indent>[- ]<key>: ["']<repo>:<tag>["'] [# comment]
    return re.compile(
        rf"^(?P<prefix>[ \t]*(?:-[ \t]+)?{re.escape(image_key)}[ \t]*:[ \t]+)"
        r"(?P<quote>[\"']?)"
        r"(?P<repo>[^\s\"'#@]+?)"
        r":(?P<version>[A-Za-z0-9_][A-Za-z0-9_.\-]{0,127})"
        r"(?P=quote)"
        r"(?=(?:[ \t]+#.*)?[ \t]*\r?$)",
        re.MULTILINE,
    )


def _find_field(content: str, repository: str, image_key: str) -> re.Match[str]:
    wanted = normalize_repository(repository)
    for m in _field_re(image_key).finditer(content):
        if normalize_repository(m.group("repo")) == wanted:
            return m
    raise ManifestFieldNotFound(f"No '{image_key}' field references {repository}.")


def locate_image(content: str, repository: str, image_key: str = "image") -> ImageReference:
    m = _find_field(content, repository, image_key)
    return ImageReference(repository=m.group("repo"), version=m.group("version"))


def patch_manifest(content: str, repository: str, version: str, image_key: str = "image") -> PatchResult:
    """Point the first matching image field at ``version``.

    Returns NOT_FOUND / UNCHANGED with the original content, or UPDATED with
    content that differs only in the tag substring.
    """
    validate_tag(version)
    try:
        m = _find_field(content, repository, image_key)
    except ManifestFieldNotFound:
        return PatchResult(status=PatchStatus.NOT_FOUND, content=content)

    old = m.group("version")
    if old == version:
        return PatchResult(status=PatchStatus.UNCHANGED, content=content, old_version=old, new_version=version)

    start, end = m.span("version")
    patched = content[:start] + version + content[end:]
    return PatchResult(status=PatchStatus.UPDATED, content=patched, old_version=old, new_version=version)


def read_manifest(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8", newline="") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestReadError(f"Cannot read manifest {path}: {type(e).__name__}: {e}") from e


def write_manifest(path: str, content: str) -> None:
    """Replace the file atomically via a temporary sibling."""
    parent = os.path.dirname(os.path.abspath(path))
    tmp_path: str | None = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".itr-", suffix=".yaml", dir=parent)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        if os.path.exists(path):
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise ManifestWriteError(f"Cannot write manifest {path}: {type(e).__name__}: {e}") from e
