from __future__ import annotations

from enum import Enum
from typing import Callable

from .alerts import EmailNotifier
from .db import EventLog, utc_now
from .errors import ManifestError, NoMatchingVersion, RegistryError
from .manifest import patch_manifest, read_manifest, write_manifest
from .models import PatchStatus, PatchSummary, ReconcileConfig, UpdateOutcome, VersionSource
from .registry import RegistryClient, default_client
from .settings import Settings
from .versions import select_latest


class RunState(str, Enum):
    START = "Start"
    FETCHING = "Fetching"
    FETCHED = "Fetched"
    FETCH_FAILED = "FetchFailed"
    SELECTING = "Selecting"
    SELECTED = "Selected"
    NO_MATCH = "NoMatch"
    PATCHING = "Patching"
    UPDATED = "Updated"
    UNCHANGED = "Unchanged"
    NOT_FOUND = "NotFound"
    DONE = "Done"


_PATCH_STATES = {
    PatchStatus.UPDATED: RunState.UPDATED,
    PatchStatus.UNCHANGED: RunState.UNCHANGED,
    PatchStatus.NOT_FOUND: RunState.NOT_FOUND,
}


class Reconciler:
    """One fetch -> select -> patch pass over a single manifest.

    Registry failures and tag sets without a recognized version degrade to
    ``config.fallback_version``. Only manifest read/write errors escape.
    """

    def __init__(
        self,
        config: ReconcileConfig,
        registry: RegistryClient,
        event_log: EventLog | None = None,
        notifier: Callable[[UpdateOutcome], object] | None = None,
    ):
        self.config = config
        self.registry = registry
        self.event_log = event_log or EventLog()
        self.notifier = notifier

    def _log(self, level: str, message: str, version: str | None = None) -> None:
        self.event_log.log_event(level, message, repository=self.config.repository, version=version)

    def run(self) -> UpdateOutcome:
        cfg = self.config
        started_at = utc_now()
        trail = [RunState.START, RunState.FETCHING]
        selected: str | None = None
        fallback_reason: str | None = None

        try:
            fetched = self.registry.fetch(cfg.repository)
        except RegistryError as e:
            trail.append(RunState.FETCH_FAILED)
            fallback_reason = str(e)
            self._log("WARN", f"Tag fetch failed ({type(e).__name__}): {e}")
            trail.extend([RunState.SELECTING, RunState.NO_MATCH])
        else:
            trail.append(RunState.FETCHED)
            for failure in fetched.failures:
                self._log("WARN", f"Tag source failed: {failure}")
            self._log("INFO", f"Fetched {len(fetched.tags)} tags for {cfg.repository} from {fetched.source}")

            trail.append(RunState.SELECTING)
            try:
                selected = select_latest(fetched.tags)
            except NoMatchingVersion as e:
                trail.append(RunState.NO_MATCH)
                fallback_reason = str(e)
                self._log("WARN", f"No recognized version among {len(fetched.tags)} tags")
            else:
                trail.append(RunState.SELECTED)
                self._log("INFO", f"Selected version {selected} from registry", version=selected)

        if selected is None:
            source = VersionSource.FALLBACK
            version = cfg.fallback_version
            self._log("WARN", f"Using fallback version {version}", version=version)
        else:
            source = VersionSource.REGISTRY
            version = selected

        trail.append(RunState.PATCHING)
        try:
            content = read_manifest(cfg.manifest_path)
            result = patch_manifest(content, cfg.repository, version, image_key=cfg.image_key)
            if result.changed:
                write_manifest(cfg.manifest_path, result.content)
        except ManifestError as e:
            self._log("ERROR", f"Run aborted: {e}", version=version)
            raise

        trail.append(_PATCH_STATES[result.status])
        if result.status is PatchStatus.UPDATED:
            self._log("INFO", f"Updated {cfg.manifest_path}: {result.old_version} -> {result.new_version}", version=version)
        elif result.status is PatchStatus.UNCHANGED:
            self._log("INFO", f"{cfg.manifest_path} already at {version}; nothing to do", version=version)
        else:
            self._log("WARN", f"No '{cfg.image_key}' field for {cfg.repository} in {cfg.manifest_path}; file untouched")
        trail.append(RunState.DONE)

        outcome = UpdateOutcome(
            repository=cfg.repository,
            manifest_path=cfg.manifest_path,
            selected_version=version,
            source=source,
            fallback_reason=fallback_reason,
            patch=PatchSummary(status=result.status, old_version=result.old_version, new_version=result.new_version),
            trail=[s.value for s in trail],
            started_at=started_at,
            finished_at=utc_now(),
        )
        self.event_log.record_run(outcome)
        if self.notifier is not None:
            self.notifier(outcome)
        return outcome


def build_reconciler(cfg: Settings, registry: RegistryClient | None = None, event_log: EventLog | None = None) -> Reconciler:
    """Wire a reconciler from environment-derived settings."""
    config = ReconcileConfig(
        repository=cfg.repository,
        manifest_path=cfg.manifest_path,
        image_key=cfg.image_key,
        fallback_version=cfg.fallback_version,
    )
    if registry is None:
        registry = default_client(
            hub_url=cfg.hub_url,
            registry_url=cfg.registry_url,
            hub_max_pages=cfg.hub_max_pages,
            timeout_s=cfg.registry_timeout_s,
        )
    notifier = EmailNotifier(cfg) if cfg.enable_email else None
    return Reconciler(config, registry, event_log=event_log, notifier=notifier)
