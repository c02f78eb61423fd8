#!/usr/bin/env python3
"""Example: poll a directory of exported snapshots and print detected changes.

The export job writes ``<snapshot_dir>/<presentation_id>.json`` on every run.
Running this script after each export diffs the new file against the stored
previous snapshot. The first run for a presentation only stores the baseline.

Storage is Postgres when SLIDEWATCH_DB_URL (or the individual SLIDEWATCH_DB_*
variables) is set in the environment or in .env, otherwise in-memory (which
only makes sense with --repeat).

Usage:
    python examples/poll_directory.py ./snapshots deck-123
    python examples/poll_directory.py ./snapshots deck-123 --export changes.xlsx
"""

import argparse
import sys
import time
from pathlib import Path

from slidewatch import DiffOrchestrator, InMemoryStateStore, PostgresStateStore
from slidewatch import configure_logging, load_settings, summarize_changes
from slidewatch.adapters import ChangeLogExporter, DirectorySnapshotSource

project_root = Path(__file__).parent.parent


def build_store(settings):
    if settings.has_database:
        store = PostgresStateStore.from_settings(settings)
        store.ensure_schema()
        return store
    return InMemoryStateStore(max_changes=settings.max_changes)


def main() -> int:
    parser = argparse.ArgumentParser(description="Diff exported presentation snapshots")
    parser.add_argument("snapshot_dir", help="Directory holding <presentation_id>.json files")
    parser.add_argument("presentation_id", help="Presentation to poll")
    parser.add_argument("--repeat", type=int, default=1, help="Number of polling cycles")
    parser.add_argument("--interval", type=float, default=30.0, help="Seconds between cycles")
    parser.add_argument("--export", help="Write the change log to this file (.csv, .xlsx or .json)")
    args = parser.parse_args()

    settings = load_settings(project_root / ".env")
    configure_logging(settings.log_level)

    store = build_store(settings)
    orchestrator = DiffOrchestrator.from_settings(
        store, settings, source=DirectorySnapshotSource(args.snapshot_dir)
    )

    if not store.is_monitoring(args.presentation_id):
        orchestrator.start_monitoring(args.presentation_id)

    try:
        for cycle in range(args.repeat):
            if cycle:
                time.sleep(args.interval)

            changes = orchestrator.poll(args.presentation_id)
            if not changes:
                print(f"Cycle {cycle + 1}: no changes")
                continue

            print(f"Cycle {cycle + 1}: {len(changes)} changes")
            for change in changes:
                print(f"  [{change.severity.value:<6}] slide {change.slide_index + 1}: {change.summary}")

        summary = summarize_changes(orchestrator.get_changes(args.presentation_id))
        print(f"\nChange log: {summary['totalChanges']} changes "
              f"({summary['highSeverityCount']} high severity)")

        if args.export:
            path = ChangeLogExporter().export(orchestrator.get_changes(args.presentation_id), args.export)
            print(f"Change log saved to: {path}")
    finally:
        if isinstance(store, PostgresStateStore):
            store.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
