"""Command-line entrypoint: run one task to completion or serve the API."""

from __future__ import annotations

import argparse
import json
import sys

from durable_agent.broadcast import AgentState, BroadcasterHub
from durable_agent.config.log import configure_logging
from durable_agent.config.settings import get_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="durable-agent", description=__doc__)
    subcommands = parser.add_subparsers(dest="command", required=True)

    run_parser = subcommands.add_parser("run", help="Run a task and print the final result.")
    run_parser.add_argument("task", help="Task text handed to the agent.")
    run_parser.add_argument("--run-id", default=None, help="Resume or create this run id.")
    run_parser.add_argument("--quiet", action="store_true", help="Do not print progress lines.")

    subcommands.add_parser("tools", help="List registered tools.")

    serve_parser = subcommands.add_parser("serve", help="Serve the HTTP API with uvicorn.")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("durable_agent.api.main:app", host=args.host, port=args.port)
        return 0

    # Imported late so `serve` does not build a second app state.
    from durable_agent.api.main import build_run_manager, build_storage
    from durable_agent.tools import build_registry

    if args.command == "tools":
        for name in build_registry().names():
            print(name)
        return 0

    storage = build_storage(settings)
    storage.migrate()
    hub = BroadcasterHub()
    manager = build_run_manager(settings=settings, storage=storage, hub=hub)
    if not args.quiet:
        hub.get(settings.default_agent_id).subscribe(_print_progress)

    try:
        existing = storage.get_run(args.run_id) if args.run_id else None
        if existing is None:
            run_id = manager.start(args.task, run_id=args.run_id)
        else:
            run_id = existing.run_id
            manager.resume_incomplete()
        record = manager.wait(run_id)
    finally:
        manager.shutdown()

    view = manager.status(record.run_id)
    print(json.dumps({"run_id": record.run_id, **view.model_dump(mode="json")}, indent=2))
    return 0 if record.status.value in {"complete", "max_turns_reached"} else 1


def _print_progress(state: AgentState) -> None:
    print(f"[{state.status}] {state.message}", file=sys.stderr)


if __name__ == "__main__":
    raise SystemExit(main())
