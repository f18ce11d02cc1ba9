"""Run one agent action from the command line.

Usage::

    python -m technodog.cli doggy-analytics analyze
    python -m technodog.cli playbook-agent ask_playbook --payload '{"question": "..."}'
    python -m technodog.cli research-book-metadata --db /tmp/books.db -q

Builds the same providers, stores and agents as the API server, runs the
action and prints the response envelope as JSON on stdout.  Log lines go
to stderr so stdout stays parseable.  Exits 1 when the action fails.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

import structlog


def _configure_cli_logging(quiet: bool) -> None:
    """Send structlog and stdlib logging to stderr.

    Called after ``technodog.main`` is imported, since that import sets up
    stdout logging for the server.  ``quiet`` keeps only WARNING and above.
    """
    level = logging.WARNING if quiet else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _parse_payload(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


async def _run(
    agent_name: str,
    action_name: str | None,
    payload: dict[str, Any],
    db_path: str | None,
    output_file: str | None,
    quiet: bool,
) -> int:
    """Wire the components, run one action, print the envelope.

    Returns 0 on success, 1 when the action raised.
    """
    # Deferred: importing technodog.main builds settings and the app.
    from technodog.api.schemas import error_envelope, success_envelope
    from technodog.main import config, open_components, settings
    from technodog.utils.errors import TechnoDogError

    _configure_cli_logging(quiet)

    app_settings = settings.model_copy(update={"database_path": db_path}) if db_path else settings

    if action_name:
        payload = {**payload, "action": action_name}

    label = payload.get("action") or "default action"
    print(f"Running: {agent_name} / {label}", file=sys.stderr)
    start = time.monotonic()

    exit_code = 0
    async with open_components(app_settings, config) as components:
        try:
            agent = components["agents"].get(agent_name)
            envelope: dict[str, Any] = success_envelope(await agent.handle(payload))
        except TechnoDogError as exc:
            envelope = error_envelope(exc).model_dump(exclude_none=True)
            exit_code = 1

    elapsed = time.monotonic() - start
    print(f"Done in {elapsed:.1f}s", file=sys.stderr)

    text = json.dumps(envelope, indent=2, default=str)
    if output_file:
        Path(output_file).write_text(text, encoding="utf-8")
        print(f"Results written to: {output_file}", file=sys.stderr)
    else:
        print(text)

    return exit_code


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m technodog.cli",
        description="Run one techno.dog agent action and print the JSON envelope.",
    )
    parser.add_argument(
        "agent",
        type=str,
        help="Agent name, e.g. doggy-analytics or playbook-agent.",
    )
    parser.add_argument(
        "action",
        type=str,
        nargs="?",
        default=None,
        help="Action to run. Defaults to the agent's default action.",
    )
    parser.add_argument(
        "--payload", "-p",
        type=str,
        default=None,
        help="JSON object merged into the request payload.",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="SQLite database path (overrides DATABASE_PATH).",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Write the envelope to a file instead of stdout.",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors.",
    )
    return parser


def main() -> None:
    """CLI entry point.  Exits with the action's status code."""
    parser = _build_parser()
    args = parser.parse_args()

    payload = _parse_payload(args.payload)
    if payload is None:
        print("Error: --payload must be a JSON object", file=sys.stderr)
        sys.exit(1)

    exit_code = asyncio.run(
        _run(args.agent, args.action, payload, args.db, args.output, args.quiet)
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
