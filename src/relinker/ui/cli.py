from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from relinker.adapters.filesystem import load_id_list, load_new_records, load_reference_configs
from relinker.app import initialize_reconciler, run_reconciliation, summarize_reconciler_state
from relinker.config import configure_logging
from relinker.domain.reconciliation.contracts import STOPPABLE_STAGES, ReconcilerStage
from relinker.domain.records import RecordType

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replace parent records and repoint the records that reference them"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    record_types = sorted(str(record_type) for record_type in RecordType)

    init = subparsers.add_parser("init", help="Create empty state and history files")
    init.add_argument("--parent-type", required=True, choices=record_types)
    init.add_argument(
        "--overwrite",
        action="store_true",
        help="Reset existing state and history files",
    )

    reconcile = subparsers.add_parser("reconcile", help="Replace parent records")
    reconcile.add_argument("--parent-type", required=True, choices=record_types)
    reconcile.add_argument(
        "--parent-id",
        action="append",
        default=[],
        help="Logical id (itemid) of a parent to replace; repeatable",
    )
    reconcile.add_argument(
        "--parent-ids-file",
        type=Path,
        help="JSON list or newline-separated file of parent ids",
    )
    reconcile.add_argument(
        "--placeholder",
        action="append",
        default=[],
        help="Internal id usable as a temporary reference; repeatable",
    )
    reconcile.add_argument(
        "--placeholders-file",
        type=Path,
        help="JSON list or newline-separated file of placeholder internal ids",
    )
    reconcile.add_argument(
        "--new-records",
        type=Path,
        required=True,
        help="JSON file with the replacement record definitions",
    )
    reconcile.add_argument(
        "--references",
        type=Path,
        help="JSON file mapping child record types to reference options (defaults built in)",
    )
    reconcile.add_argument(
        "--stop-after",
        type=ReconcilerStage,
        default=ReconcilerStage.END,
        choices=sorted(STOPPABLE_STAGES),
        help="Last stage to run for each parent",
    )
    reconcile.add_argument(
        "--save-interval",
        type=int,
        help="Children processed between history checkpoints (defaults to config)",
    )
    reconcile.add_argument(
        "--no-rectify",
        action="store_true",
        help="Skip checking deletion/creation memos against live records",
    )
    reconcile.add_argument(
        "--snapshot",
        action="store_true",
        help="Also keep timestamped copies of every state/history write",
    )

    status = subparsers.add_parser("status", help="Summarise the persisted state")
    status.add_argument("--parent-type", required=True, choices=record_types)

    return parser.parse_args(list(argv))


def _collect_ids(values: Sequence[str], path: Path | None, *, label: str) -> list[str]:
    ids = [value.strip() for value in values if value.strip()]
    if path is not None:
        ids.extend(load_id_list(path))
    if not ids:
        raise ValueError(f"No {label} given")
    return list(dict.fromkeys(ids))


def _reconcile(args: argparse.Namespace) -> None:
    if args.save_interval is not None and args.save_interval < 1:
        raise ValueError("--save-interval must be at least 1")
    result = run_reconciliation(
        parent_record_type=args.parent_type,
        parent_ids=_collect_ids(args.parent_id, args.parent_ids_file, label="parent ids"),
        placeholder_ids=_collect_ids(
            args.placeholder, args.placeholders_file, label="placeholder ids"
        ),
        new_records=load_new_records(args.new_records),
        references=load_reference_configs(args.references) if args.references else None,
        stop_after=args.stop_after,
        save_interval=args.save_interval,
        rectify=not args.no_rectify,
        snapshot=args.snapshot,
    )
    for parent_id in result.failed_parents:
        log.warning("Parent %s did not complete; see state errors", parent_id)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "init":
            store = initialize_reconciler(
                parent_record_type=parsed_args.parent_type,
                overwrite=parsed_args.overwrite,
            )
            log.info("State file: %s", store.state_path)
            log.info("History file: %s", store.history_path)
        elif parsed_args.command == "reconcile":
            _reconcile(parsed_args)
        elif parsed_args.command == "status":
            summary = summarize_reconciler_state(parent_record_type=parsed_args.parent_type)
            log.info(
                "Stage=%s, phase1 children=%s, phase2 children=%s, deleted=%s, created=%s",
                summary.current_stage,
                summary.first_update_children,
                summary.second_update_children,
                summary.items_deleted,
                summary.new_items,
            )
            for stage, count in sorted(summary.errors_by_stage.items()):
                log.info("Errors at %s: %s", stage, count)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except (ValueError, OSError):
        log.exception("Invalid input")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
