from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from kintree import app
from kintree.config import ConfigurationError, configure_logging, get_graph_config
from kintree.domain.cancellation import Cancellation
from kintree.domain.duplicates import DuplicateAction, DuplicateMode, DuplicateScope
from kintree.domain.model import (
    ConfidenceLevel,
    ParentChildType,
    PredictionStatus,
    UnionType,
)
from kintree.domain.prediction import PredictionAction

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from kintree.config import GraphConfig

log = logging.getLogger(__name__)

EXIT_REJECTED = 1


def _choices(enum_cls: type) -> list[str]:
    return [member.value for member in enum_cls]


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Maintain and analyse kinship trees")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    edge = subparsers.add_parser("edge", help="Add a parent-child edge")
    edge.add_argument("--tree", required=True, help="Tree id")
    edge.add_argument("--parent", required=True, help="Parent person id")
    edge.add_argument("--child", required=True, help="Child person id")
    edge.add_argument(
        "--type",
        choices=_choices(ParentChildType),
        default=ParentChildType.BIOLOGICAL.value,
        help="Relationship type (default: %(default)s)",
    )
    edge.add_argument("--created-by", help="Who is recording the edge")

    union = subparsers.add_parser("union", help="Record a union between people")
    union.add_argument("--tree", required=True, help="Tree id")
    union.add_argument(
        "--person",
        action="append",
        required=True,
        help="Member person id (repeat for each member)",
    )
    union.add_argument(
        "--type",
        choices=_choices(UnionType),
        default=UnionType.MARRIAGE.value,
        help="Union type (default: %(default)s)",
    )
    union.add_argument("--created-by", help="Who is recording the union")

    classify = subparsers.add_parser("classify", help="Name the relationship between two people")
    classify.add_argument("--tree", required=True, help="Tree id")
    classify.add_argument("--from", dest="person_a", required=True, help="Reference person id")
    classify.add_argument("--to", dest="person_b", required=True, help="Person to describe")
    classify.add_argument("--max-depth", type=int, help="Path length limit (defaults to config)")

    duplicates = subparsers.add_parser("duplicates", help="Duplicate person detection")
    duplicates_sub = duplicates.add_subparsers(dest="duplicates_command", required=True)
    dup_scan = duplicates_sub.add_parser("scan", help="List duplicate candidates")
    dup_scan.add_argument("--tree", required=True, help="Source tree id")
    dup_scan.add_argument("--target-tree", help="Compare against this tree instead")
    dup_scan.add_argument(
        "--mode",
        choices=_choices(DuplicateMode),
        default=DuplicateMode.AUTO.value,
        help="Matching strategy (default: %(default)s)",
    )
    dup_scan.add_argument("--min-confidence", type=float, help="Lowest confidence to report")
    dup_scan.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    dup_scan.add_argument("--page-size", type=int, help="Candidates per page")
    dup_scan.add_argument("--timeout", type=float, help="Cancel the scan after N seconds")
    dup_resolve = duplicates_sub.add_parser("resolve", help="Approve or reject a candidate")
    dup_resolve.add_argument("--tree", required=True, help="Tree id owning the decision")
    dup_resolve.add_argument("--person-a", required=True, help="First person id")
    dup_resolve.add_argument("--person-b", required=True, help="Second person id")
    dup_resolve.add_argument("--action", choices=_choices(DuplicateAction), required=True)
    dup_resolve.add_argument("--reviewer", required=True, help="Reviewer name")

    predictions = subparsers.add_parser("predictions", help="Relationship predictions")
    predictions_sub = predictions.add_subparsers(dest="predictions_command", required=True)
    pred_scan = predictions_sub.add_parser("scan", help="Run the prediction rules")
    pred_scan.add_argument("--tree", required=True, help="Tree id")
    pred_scan.add_argument("--timeout", type=float, help="Cancel the scan after N seconds")
    pred_list = predictions_sub.add_parser("list", help="List stored predictions")
    pred_list.add_argument("--tree", required=True, help="Tree id")
    pred_list.add_argument("--status", action="append", choices=_choices(PredictionStatus))
    pred_list.add_argument("--level", action="append", choices=_choices(ConfidenceLevel))
    pred_list.add_argument("--rule", action="append", help="Only predictions from this rule")
    pred_list.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    pred_list.add_argument("--page-size", type=int, help="Predictions per page")
    pred_resolve = predictions_sub.add_parser("resolve", help="Confirm, dismiss or apply")
    pred_resolve.add_argument("--id", dest="prediction_id", required=True, help="Prediction id")
    pred_resolve.add_argument("--action", choices=_choices(PredictionAction), required=True)
    pred_resolve.add_argument("--reviewer", required=True, help="Reviewer name")
    pred_resolve.add_argument("--reason", help="Reason for a dismissal")
    pred_accept = predictions_sub.add_parser(
        "accept", help="Apply every new prediction above a threshold"
    )
    pred_accept.add_argument("--tree", required=True, help="Tree id")
    pred_accept.add_argument("--reviewer", required=True, help="Reviewer name")
    pred_accept.add_argument("--min-confidence", type=float, help="Defaults to the high band")

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _cancellation(timeout: float | None) -> Cancellation | None:
    if timeout is None:
        return None
    if timeout <= 0:
        raise ValueError("Timeout must be positive")
    return Cancellation.with_timeout(timeout)


def _run_edge(args: argparse.Namespace, config: GraphConfig) -> int:
    proposal = app.propose_edge(
        tree_id=_parse_uuid(args.tree),
        parent_id=_parse_uuid(args.parent),
        child_id=_parse_uuid(args.child),
        edge_type=ParentChildType(args.type),
        created_by=args.created_by,
        config=config,
    )
    if not proposal.created:
        log.warning("Edge rejected (%s): %s", proposal.outcome.value, proposal.error)
        return EXIT_REJECTED
    log.info("Created edge %s", proposal.entity_id)
    return 0


def _run_union(args: argparse.Namespace, config: GraphConfig) -> int:
    proposal = app.propose_union(
        tree_id=_parse_uuid(args.tree),
        person_ids=[_parse_uuid(value) for value in args.person],
        union_type=UnionType(args.type),
        created_by=args.created_by,
        config=config,
    )
    if not proposal.created:
        log.warning("Union rejected (%s): %s", proposal.outcome.value, proposal.error)
        return EXIT_REJECTED
    log.info("Created union %s", proposal.entity_id)
    return 0


def _run_classify(args: argparse.Namespace, config: GraphConfig) -> int:
    result = app.classify_relationship(
        tree_id=_parse_uuid(args.tree),
        person_a_id=_parse_uuid(args.person_a),
        person_b_id=_parse_uuid(args.person_b),
        max_depth=args.max_depth,
        config=config,
    )
    if result.label is None:
        log.info("%s (searched %s steps)", result.status.value, result.max_depth)
        return 0
    steps = result.path.length if result.path is not None else 0
    log.info("%s [%s] via %s step(s)", result.label.term, result.label.key, steps)
    return 0


def _run_duplicates(args: argparse.Namespace, config: GraphConfig) -> int:
    if args.duplicates_command == "resolve":
        link = app.resolve_duplicate(
            tree_id=_parse_uuid(args.tree),
            person_a_id=_parse_uuid(args.person_a),
            person_b_id=_parse_uuid(args.person_b),
            action=DuplicateAction(args.action),
            reviewer=args.reviewer,
        )
        log.info("Person link %s is %s", link.id, link.status.value)
        return 0

    page = app.detect_duplicates(
        scope=DuplicateScope(
            tree_id=_parse_uuid(args.tree),
            target_tree_id=_parse_uuid(args.target_tree) if args.target_tree else None,
        ),
        mode=DuplicateMode(args.mode),
        min_confidence=args.min_confidence,
        page=args.page,
        page_size=args.page_size,
        cancellation=_cancellation(args.timeout),
        config=config,
    )
    for candidate in page.items:
        log.info(
            "%6.2f %-13s %s | %s  (%s / %s)",
            candidate.confidence,
            candidate.match_type.value,
            candidate.evidence.name_a,
            candidate.evidence.name_b,
            candidate.person_a_id,
            candidate.person_b_id,
        )
    for match_type, summary in page.summary.items():
        log.info(
            "%s: count=%s avg=%s min=%s max=%s",
            match_type.value,
            summary.count,
            summary.average_confidence,
            summary.min_confidence,
            summary.max_confidence,
        )
    log.info("Page %s of %s (%s candidate(s))", page.page, page.pages, page.total)
    return 0


def _run_predictions(args: argparse.Namespace, config: GraphConfig) -> int:
    command = args.predictions_command
    if command == "scan":
        summary = app.scan_predictions(
            tree_id=_parse_uuid(args.tree),
            cancellation=_cancellation(args.timeout),
            config=config,
        )
        log.info(
            "Batch %s: total=%s high=%s medium=%s low=%s",
            summary.batch_id,
            summary.total,
            summary.high,
            summary.medium,
            summary.low,
        )
        return 0
    if command == "list":
        page = app.list_predictions(
            tree_id=_parse_uuid(args.tree),
            statuses=[PredictionStatus(value) for value in args.status] if args.status else None,
            levels=[ConfidenceLevel(value) for value in args.level] if args.level else None,
            rule_ids=args.rule,
            page=args.page,
            page_size=args.page_size,
            config=config,
        )
        for prediction in page.items:
            log.info(
                "%s %6.2f %-6s %-9s %s",
                prediction.id,
                prediction.confidence,
                prediction.confidence_level.value,
                prediction.status.value,
                prediction.explanation,
            )
        log.info("%s of %s prediction(s)", len(page.items), page.total)
        return 0
    if command == "resolve":
        prediction = app.resolve_prediction(
            prediction_id=_parse_uuid(args.prediction_id),
            action=PredictionAction(args.action),
            reviewer=args.reviewer,
            reason=args.reason,
            config=config,
        )
        if prediction.failure_reason and prediction.status is not PredictionStatus.APPLIED:
            log.warning("Prediction %s not applied: %s", prediction.id, prediction.failure_reason)
            return EXIT_REJECTED
        log.info("Prediction %s is %s", prediction.id, prediction.status.value)
        return 0
    if command == "accept":
        results = app.accept_high_confidence(
            tree_id=_parse_uuid(args.tree),
            reviewer=args.reviewer,
            min_confidence=args.min_confidence,
            config=config,
        )
        applied = sum(1 for prediction in results if prediction.status is PredictionStatus.APPLIED)
        log.info("Applied %s of %s prediction(s)", applied, len(results))
        return 0
    raise ValueError(f"Unsupported predictions command: {command}")


_HANDLERS = {
    "edge": _run_edge,
    "union": _run_union,
    "classify": _run_classify,
    "duplicates": _run_duplicates,
    "predictions": _run_predictions,
}


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(verbose=parsed_args.verbose)
        config = get_graph_config()
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        exit_code = _HANDLERS[parsed_args.command](parsed_args, config)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point: load ``.env`` and run the CLI."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
