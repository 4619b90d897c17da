from __future__ import annotations

import re
from typing import Iterable

from .errors import NoMatchingVersion


# Two dot-separated non-negative integers. Tags such as "1.25.3" or
# "1.25-alpine" are intentionally not recognized.
VERSION_RE = re.compile(r"[0-9]+\.[0-9]+")


def is_recognized(tag: str) -> bool:
    return VERSION_RE.fullmatch(tag) is not None


def version_key(tag: str) -> tuple[int, int]:
    """Numeric (major, minor) sort key for a recognized tag."""
    if not is_recognized(tag):
        raise ValueError(f"Unrecognized version tag: {tag!r}")
    major, minor = tag.split(".")
    return int(major), int(minor)


def recognized(tags: Iterable[str]) -> list[str]:
    """Recognized tags, lowest first.

    Equal (major, minor) pairs such as "1.2" and "1.02" are ordered by their
    string form so the result does not depend on input order.
    """
    return sorted({t for t in tags if is_recognized(t)}, key=lambda t: (version_key(t), t))


def select_latest(tags: Iterable[str]) -> str:
    candidates = recognized(tags)
    if not candidates:
        raise NoMatchingVersion("No tag matches the MAJOR.MINOR version pattern.")
    return candidates[-1]
