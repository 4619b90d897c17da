from __future__ import annotations

import argparse
import dataclasses
import json
import os
import sys

import requests
from pydantic import ValidationError

from itr.db import EventLog
from itr.errors import ManifestError
from itr.models import UpdateOutcome
from itr.reconciler import build_reconciler
from itr.settings import settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def write_github_output(path: str, outcome: UpdateOutcome) -> None:
    """Append step outputs so a later CI step can commit only on change."""
    lines = [
        f"changed={'true' if outcome.changed else 'false'}",
        f"version={outcome.selected_version}",
        f"source={outcome.source.value}",
        f"old_version={outcome.patch.old_version or ''}",
    ]
    with open(path, "a", encoding="utf-8") as fh:
        fh.write("\n".join(lines) + "\n")


def _run_local(args: argparse.Namespace) -> int:
    cfg = dataclasses.replace(
        settings,
        repository=args.repository,
        manifest_path=args.manifest,
        image_key=args.image_key,
        fallback_version=args.fallback_version,
    )
    event_log = EventLog(None if args.no_db else args.db)
    try:
        reconciler = build_reconciler(cfg, event_log=event_log)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    try:
        outcome = reconciler.run()
    except ManifestError as e:
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 1

    _print(outcome.model_dump(mode="json"))
    if args.github_output:
        write_github_output(args.github_output, outcome)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Image Tag Reconciler CLI")
    p.add_argument("--api", default=os.getenv("ITR_API", "http://localhost:8000"), help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_run = sub.add_parser("run", help="Reconcile once in-process and print the outcome")
    s_run.add_argument("--repository", default=settings.repository, help="Image repository, e.g. nginx")
    s_run.add_argument("--manifest", default=settings.manifest_path, help="YAML manifest to patch")
    s_run.add_argument("--image-key", default=settings.image_key, help="Field key holding the image reference")
    s_run.add_argument("--fallback-version", default=settings.fallback_version)
    s_run.add_argument("--db", default=settings.db_path, help="SQLite audit log path")
    s_run.add_argument("--no-db", action="store_true", help="Do not record events/runs in SQLite")
    s_run.add_argument(
        "--github-output",
        default=os.getenv("GITHUB_OUTPUT"),
        help="File to append changed=/version=/source= lines to (defaults to $GITHUB_OUTPUT)",
    )

    sub.add_parser("trigger", help="Ask a running service to reconcile now")

    s_runs = sub.add_parser("runs", help="Show recent runs")
    s_runs.add_argument("--limit", type=int, default=20)

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    args = p.parse_args(argv)

    if args.cmd == "run":
        return _run_local(args)

    base = args.api.rstrip("/")

    if args.cmd == "trigger":
        r = requests.post(f"{base}/runs", timeout=120)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "runs":
        _print(requests.get(f"{base}/runs", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
