"""FlowFn SDK diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json

from flowfn_sdk.client import WorkflowApiClient
from flowfn_sdk.config import FlowFnSettings
from flowfn_sdk.errors import FlowFnError
from flowfn_sdk.models import RunSnapshot
from flowfn_sdk.sdk import configure_logging, create_registry
from flowfn_sdk.storage import RegistryUnavailableError
from flowfn_sdk.tracking import await_run


def load_registry(settings: FlowFnSettings):
    try:
        return create_registry(settings)
    except RegistryUnavailableError as exc:
        print(f"Registry unavailable: {exc}")
        raise SystemExit(1)


def load_client(settings: FlowFnSettings) -> WorkflowApiClient:
    return WorkflowApiClient(
        settings.base_url,
        app_code=settings.app_code,
        api_key=settings.api_key,
        timeout=settings.request_timeout_seconds,
    )


def _snapshot_payload(snapshot: RunSnapshot) -> dict[str, object]:
    return {
        "run_id": snapshot.run_id,
        "state": snapshot.state.value,
        "raw_state": snapshot.raw_state,
        "payload": dict(snapshot.payload),
    }


def cmd_runs(args: argparse.Namespace) -> None:
    settings = FlowFnSettings()
    registry = load_registry(settings)
    prefix = settings.registry_prefix
    entries = []
    for stored in sorted(registry.list_keys(prefix)):
        run_id = registry.get(stored)
        if run_id is None:
            continue
        entries.append({"key": stored[len(prefix):], "run_id": run_id})

    if args.json:
        print(json.dumps(entries, indent=2))
    else:
        for entry in entries:
            print(f"{entry['key']} -> {entry['run_id']}")


def cmd_clear(args: argparse.Namespace) -> None:
    settings = FlowFnSettings()
    registry = load_registry(settings)
    stored = f"{settings.registry_prefix}{args.key}"
    existed = registry.get(stored) is not None
    registry.delete(stored)
    print(json.dumps({"key": args.key, "removed": existed}))


def cmd_status(args: argparse.Namespace) -> None:
    settings = FlowFnSettings()

    async def fetch() -> RunSnapshot:
        async with load_client(settings) as client:
            return await client.fetch_status(args.run_id)

    try:
        snapshot = asyncio.run(fetch())
    except FlowFnError as exc:
        print(f"Status query failed: {exc}")
        raise SystemExit(1)
    print(json.dumps(_snapshot_payload(snapshot), indent=2, default=str))


def cmd_await(args: argparse.Namespace) -> None:
    settings = FlowFnSettings()
    options = settings.poll_options().merged(
        poll_interval_seconds=args.interval,
        max_timeout_seconds=args.timeout,
    )

    async def wait() -> RunSnapshot:
        async with load_client(settings) as client:
            return await await_run(client, args.run_id, options)

    try:
        snapshot = asyncio.run(wait())
    except FlowFnError as exc:
        print(f"Run did not complete: {exc}")
        raise SystemExit(1)
    print(json.dumps(_snapshot_payload(snapshot), indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="FlowFn SDK diagnostics")
    parser.add_argument("--log-level", default=None, help="Override FLOWFN_LOG_LEVEL")
    sub = parser.add_subparsers(dest="cmd")

    p_runs = sub.add_parser("runs", help="List runs persisted in the registry")
    p_runs.add_argument("--json", action="store_true", help="Output JSON")
    p_runs.set_defaults(func=cmd_runs)

    p_clear = sub.add_parser("clear", help="Remove a persisted run by tracking key")
    p_clear.add_argument("key")
    p_clear.set_defaults(func=cmd_clear)

    p_status = sub.add_parser("status", help="Fetch the current status of a run once")
    p_status.add_argument("run_id")
    p_status.set_defaults(func=cmd_status)

    p_await = sub.add_parser("await", help="Poll a run until it reaches a terminal state")
    p_await.add_argument("run_id")
    p_await.add_argument("--interval", type=float, default=None, help="Poll interval in seconds")
    p_await.add_argument("--timeout", type=float, default=None, help="Deadline in seconds")
    p_await.set_defaults(func=cmd_await)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    configure_logging(args.log_level.upper() if args.log_level else FlowFnSettings().log_level)
    args.func(args)


if __name__ == "__main__":
    main()
