from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict, List, Sequence

from ..config import load_routing_table, load_settings
from ..domain.models import ExtractionRequest, FallbackReport, PlanTier, PointBalances
from ..extraction.scoring import interpret_confidence
from ..logging import get_logger
from ..orchestrator import PlanResolver, ProviderRouter
from ..paths import expand_abs
from ..service import build_orchestrator, close_adapters
from ..usage import UsageDatabase

LOG = get_logger("cli-main")


def _read_images(paths: Sequence[str]) -> List[bytes]:
    images: List[bytes] = []
    for path in paths:
        with open(expand_abs(path), "rb") as fh:
            images.append(fh.read())
    return images


def report_to_json(report: FallbackReport) -> Dict[str, Any]:
    out = report.metadata.to_response()
    reading = interpret_confidence(report.metadata.confidence)
    out["provider"] = report.winning_provider
    out["tier"] = report.tier.value
    out["pharmaceuticalForm"] = report.metadata.pharmaceutical_form
    out["confidenceLevel"] = reading.level
    out["recommendation"] = reading.recommendation
    out["attempts"] = [
        {
            "provider": a.provider,
            "success": a.success,
            "elapsedMs": round(a.elapsed_ms, 1),
            "error": a.error_kind.value if a.error_kind else None,
        }
        for a in report.attempts
    ]
    return out


def _store(ns: argparse.Namespace) -> UsageDatabase:
    settings = load_settings(os.getcwd())
    return UsageDatabase(ns.db or settings.usage_db_path, root_dir=os.getcwd())


def _add_usage_cli(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    usage = subparsers.add_parser(
        "usage",
        help="Usage log and point balance store utilities.",
        description="Initialize the usage DB, set point balances and summarize provider usage.",
    )
    usage.add_argument("--db", help="Path to the usage SQLite file (default: USAGE_DB_PATH or var/usage)")
    usage_sub = usage.add_subparsers(dest="usage_cmd", required=True)

    init = usage_sub.add_parser("init", help="Create/ensure the usage DB schema exists")

    def _init(ns: argparse.Namespace) -> int:
        store = _store(ns)
        LOG.info(f"Usage DB ready at: {store.db_path}")
        print(store.db_path)
        return 0

    init.set_defaults(handler=_init)

    set_balance = usage_sub.add_parser("set-balance", help="Set a user's plan-scoped point balances")
    set_balance.add_argument("--user-id", required=True)
    set_balance.add_argument("--basic", type=int, default=0)
    set_balance.add_argument("--standard", type=int, default=0)
    set_balance.add_argument("--business", type=int, default=0)

    def _set_balance(ns: argparse.Namespace) -> int:
        if min(ns.basic, ns.standard, ns.business) < 0:
            LOG.error("Balances must not be negative")
            return 2
        store = _store(ns)
        store.set_balances(ns.user_id, PointBalances(basic=ns.basic, standard=ns.standard, business=ns.business))
        return 0

    set_balance.set_defaults(handler=_set_balance)

    summary = usage_sub.add_parser("summary", help="Per-provider attempts, success and cost totals")

    def _summary(ns: argparse.Namespace) -> int:
        print(json.dumps(_store(ns).provider_summary(), indent=2))
        return 0

    summary.set_defaults(handler=_summary)


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="pharma-ocr",
        description="Multi-provider OCR extraction for pharmaceutical packaging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_cmd = subparsers.add_parser("extract", help="Extract batch, product, expiry and manufacturer from photos.")
    extract_cmd.add_argument("--image", required=True, nargs="+", help="One or more package photos")
    extract_cmd.add_argument("--user-id", help="Resolve the plan tier from this user's point balances")
    extract_cmd.add_argument("--hint", help="Free-text context passed to LLM-backed providers")

    def _extract(ns: argparse.Namespace) -> int:
        try:
            images = _read_images(ns.image)
        except OSError as exc:
            LOG.error(f"Cannot read image: {exc}")
            return 2
        orchestrator = build_orchestrator(script_dir=os.getcwd())

        async def _run() -> FallbackReport:
            try:
                return await orchestrator.run(ExtractionRequest(images=images, user_id=ns.user_id, hint=ns.hint))
            finally:
                await close_adapters(orchestrator)

        report = asyncio.run(_run())
        print(json.dumps(report_to_json(report), ensure_ascii=False, indent=2))
        return 1 if report.degraded else 0

    extract_cmd.set_defaults(handler=_extract)

    route_cmd = subparsers.add_parser("route", help="Show the provider chain for a plan tier.")
    route_cmd.add_argument("--tier", required=True, choices=[t.value for t in PlanTier])

    def _route(ns: argparse.Namespace) -> int:
        settings = load_settings(os.getcwd())
        router = ProviderRouter(load_routing_table(os.getcwd(), settings))
        chain = router.route_for(ns.tier)
        print(json.dumps([p.as_dict() for p in chain], indent=2))
        return 0

    route_cmd.set_defaults(handler=_route)

    plan_cmd = subparsers.add_parser("plan", help="Resolve a user's plan tier from point balances.")
    plan_cmd.add_argument("--user-id", required=True)
    plan_cmd.add_argument("--db", help="Path to the usage SQLite file")

    def _plan(ns: argparse.Namespace) -> int:
        tier = asyncio.run(PlanResolver(_store(ns)).resolve_plan(ns.user_id))
        print(tier.value)
        return 0

    plan_cmd.set_defaults(handler=_plan)

    _add_usage_cli(subparsers)

    serve = subparsers.add_parser("serve", help="Run the extraction HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8002)
    serve.add_argument("--log-level", default="info")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )

    def _serve(ns: argparse.Namespace) -> int:
        from ..api import create_app
        import uvicorn

        app = create_app(build_orchestrator(script_dir=os.getcwd()), allow_origins=ns.allow_origins)
        uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
        return 0

    serve.set_defaults(handler=_serve)

    args = parser.parse_args(provided)
    code = args.handler(args)
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
