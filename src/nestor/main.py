"""Command line entry point for nestor."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any, cast

from dotenv import load_dotenv

from nestor.app import (
    create_member,
    create_project,
    membership_form,
    show_project,
    update_project,
)
from nestor.config import ConfigurationError, configure_logging
from nestor.domain.project_updates import ProjectNotFoundError
from nestor.domain.reconciliation import (
    ConcurrentModificationError,
    ReconciliationError,
    ValidationFailure,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from nestor.domain.model import Project
    from nestor.domain.reconciliation import NestedSaveResult

log = logging.getLogger(__name__)

EXIT_INVALID = 2
EXIT_FATAL = 1


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage projects with nested tasks and members")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    project = subparsers.add_parser("project", help="Project commands")
    project_sub = project.add_subparsers(dest="project_command", required=True)

    project_create = project_sub.add_parser("create", help="Create a project from a payload")
    project_create.add_argument(
        "payload",
        type=str,
        help="Path to a JSON form payload, or '-' to read stdin",
    )

    project_update = project_sub.add_parser("update", help="Apply a payload to a project")
    project_update.add_argument("project_id", type=int, help="Project to update")
    project_update.add_argument(
        "payload",
        type=str,
        help="Path to a JSON form payload, or '-' to read stdin",
    )

    project_show = project_sub.add_parser("show", help="Print a project with its children")
    project_show.add_argument("project_id", type=int)

    project_members = project_sub.add_parser(
        "members",
        help="Print every member paired with its membership in the project",
    )
    project_members.add_argument("project_id", type=int)

    member = subparsers.add_parser("member", help="Member commands")
    member_sub = member.add_subparsers(dest="member_command", required=True)
    member_create = member_sub.add_parser("create", help="Create a member")
    member_create.add_argument("--name", type=str, required=True, help="Display name")
    member_create.add_argument("--email", type=str, help="Optional email address")

    return parser.parse_args(list(argv))


def _read_payload(source: str) -> dict[str, object]:
    try:
        text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read payload {source}: {exc.strerror}") from exc
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON payload: {exc.msg}") from exc
    if not isinstance(document, dict):
        raise ValueError("Payload must be a JSON object")  # noqa: TRY004
    return cast(dict[str, object], document)


def _emit(document: object) -> None:
    sys.stdout.write(json.dumps(document, indent=2, default=str) + "\n")


def _project_document(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "lock_version": project.lock_version,
        "tasks": [
            {"id": task.id, "title": task.title, "notes": task.notes, "done": task.done}
            for task in project.tasks
        ],
        "memberships": [
            {"id": membership.id, "member_id": membership.member_id, "role": membership.role}
            for membership in project.memberships
        ],
    }


def _report_save(result: NestedSaveResult[Project]) -> int:
    # failures surface as ValidationFailure, reported by main()
    _emit(_project_document(result.raise_for_failures()))
    return 0


def _run(args: argparse.Namespace, payload: dict[str, object] | None) -> int:
    if args.command == "member" and args.member_command == "create":
        member = create_member(name=args.name, email=args.email)
        _emit({"id": member.id, "name": member.name, "email": member.email})
        return 0
    if args.command == "project":
        if args.project_command == "create":
            return _report_save(create_project(payload or {}))
        if args.project_command == "update":
            return _report_save(update_project(args.project_id, payload or {}))
        if args.project_command == "show":
            _emit(_project_document(show_project(args.project_id)))
            return 0
        if args.project_command == "members":
            _emit(
                [
                    {
                        "member_id": pairing.related.id,
                        "name": pairing.related.name,
                        "id": pairing.membership.id,
                        "keep": pairing.persisted,
                        "role": pairing.membership.role,
                    }
                    for pairing in membership_form(args.project_id)
                ]
            )
            return 0
    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    payload: dict[str, object] | None = None
    try:
        if getattr(parsed_args, "payload", None) is not None:
            payload = _read_payload(parsed_args.payload)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(EXIT_INVALID)

    try:
        code = _run(parsed_args, payload)
    except ValidationFailure as exc:
        _emit({"errors": exc.failures.as_dict()})
        sys.exit(EXIT_INVALID)
    except ConcurrentModificationError:
        log.exception("Project changed concurrently, reload and retry")
        sys.exit(EXIT_FATAL)
    except (ReconciliationError, ProjectNotFoundError, ValueError) as exc:
        log.error("Rejected: %s", exc)  # noqa: TRY400
        sys.exit(EXIT_INVALID)
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(EXIT_FATAL)
    except Exception:
        log.exception("Fatal error")
        sys.exit(EXIT_FATAL)
    if code:
        sys.exit(code)


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
