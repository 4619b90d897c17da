from __future__ import annotations


class ReconcilerError(Exception):
    pass


class RegistryError(ReconcilerError):
    """All tag sources failed. ``attempts`` holds one message per source."""

    def __init__(self, message: str, attempts: list[str] | None = None):
        super().__init__(message)
        self.attempts = list(attempts or [])


class RegistryUnavailable(RegistryError):
    pass


class RegistryFormatError(RegistryError):
    pass


class NoMatchingVersion(ReconcilerError):
    pass


class ManifestError(ReconcilerError):
    pass


class ManifestFieldNotFound(ManifestError):
    pass


class ManifestReadError(ManifestError):
    pass


class ManifestWriteError(ManifestError):
    pass
