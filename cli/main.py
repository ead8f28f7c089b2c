#!/usr/bin/env python3
"""
Clinic Signal Engine CLI - run passes and inspect results.

Usage:
    python -m cli.main init
    python -m cli.main audit [--dry-run] [--batch-size N] [--clinic SLUG ...]
    python -m cli.main streaks [--dry-run] [--type TYPE]
    python -m cli.main alerts [--limit N]
    python -m cli.main resolve-alert ALERT_ID
    python -m cli.main leaderboard TYPE [--limit N]

Exit codes: 0 on clean or partial runs, 1 when a pass cannot run at all.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict

import yaml

from clinicops import paths
from clinicops.config import ENGINE_CONFIG_FILE, LOG_JSON, LOG_LEVEL, EngineConfig
from clinicops.errors import BatchFatalError
from clinicops.observability import configure_logging
from clinicops.orchestrator import PassResult
from clinicops.service import SignalEngine
from clinicops.store import Database, DocumentStore
from clinicops.streaks import DEFINITIONS_BY_TYPE

logger = logging.getLogger(__name__)


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [
            max(len(str(row[i])) for row in [headers] + rows) for i in range(len(headers))
        ]

    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths, strict=False))
    print(header_str)
    print("─" * len(header_str))

    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths, strict=False)))


def print_pass(result: PassResult, as_json: bool = False):
    """Print a pass summary."""
    summary = result.to_dict()
    if as_json:
        print(json.dumps(summary, indent=2, default=str))
        return

    mode = " (DRY RUN)" if result.dry_run else ""
    print_header(f"{result.job_type.upper()} PASS{mode}")
    print(f"  Run:        {result.run_id}")
    print(f"  Processed:  {result.processed}  (ok {result.succeeded}, failed {result.failed})")
    if result.job_type == "tag_audit":
        print(f"  New tags:   {summary['newTags']}")
        print(f"  Resolved:   {summary['resolvedTags']}")
        print(f"  Critical:   {summary['criticalIssues']}")
        print(f"  Avg score:  {summary['averageScore']:.1f}")
        print(f"  Alerts:     +{result.alerts_created} / -{result.alerts_resolved}")
    else:
        print(f"  Rewards:    {summary['rewardsEarned']}")
    print(f"  Duration:   {result.duration_ms}ms")
    if result.aborted:
        print(f"  ⚠️  Aborted: {len(result.not_processed)} clinics not processed")
    for error in result.errors:
        print(f"  ❌ {error}")


# =============================================================================
# COMMANDS
# =============================================================================


def cmd_init(args) -> int:
    """Create app directories, the default engine.yaml and the store schema."""
    config_path = paths.config_dir() / ENGINE_CONFIG_FILE
    if config_path.exists():
        print(f"Config exists: {config_path}")
    else:
        with open(config_path, "w") as f:
            yaml.safe_dump({"engine": asdict(EngineConfig())}, f, sort_keys=False)
        print(f"Wrote default config: {config_path}")

    db = Database(args.db)
    DocumentStore(db)
    print(f"Store ready: {db.db_path}")
    db.close()
    return 0


def cmd_audit(args) -> int:
    engine = SignalEngine.open(args.db)
    try:
        result = engine.run_audit(
            slugs=args.clinic or None,
            dry_run=args.dry_run,
            batch_size=args.batch_size,
        )
    finally:
        engine.close()
    print_pass(result, args.json)
    return 0


def cmd_streaks(args) -> int:
    engine = SignalEngine.open(args.db)
    try:
        result = engine.run_streaks(
            slugs=args.clinic or None,
            dry_run=args.dry_run,
            batch_size=args.batch_size,
            streak_type=args.type,
        )
    finally:
        engine.close()
    print_pass(result, args.json)
    return 0


def cmd_alerts(args) -> int:
    engine = SignalEngine.open(args.db)
    try:
        alerts = engine.get_active_alerts(args.limit)
    finally:
        engine.close()

    print_header(f"ACTIVE ALERTS ({len(alerts)})")
    if not alerts:
        print("No active alerts.")
        return 0

    rows = [
        [a.severity, a.type, a.clinic_slug, (a.created_at or "")[:16].replace("T", " "), a.id]
        for a in alerts
    ]
    print_table(["Sev", "Type", "Clinic", "Created", "ID"], rows, [8, 24, 24, 16, 50])
    return 0


def cmd_resolve_alert(args) -> int:
    engine = SignalEngine.open(args.db)
    try:
        alert = engine.resolve_alert_by_id(args.alert_id)
    finally:
        engine.close()

    if alert is None:
        print(f"No active alert {args.alert_id}")
        return 1
    print(f"✅ Resolved {alert.id} ({alert.clinic_slug})")
    return 0


def cmd_leaderboard(args) -> int:
    engine = SignalEngine.open(args.db)
    try:
        rows = engine.get_streak_leaderboard(args.type, args.limit)
    finally:
        engine.close()

    print_header(f"LEADERBOARD: {DEFINITIONS_BY_TYPE[args.type].name}")
    if not rows:
        print("No clinics with an active count.")
        return 0
    table = [
        [i, r["clinicName"][:30], r["count"], r["bestCount"], "yes" if r["active"] else "no"]
        for i, r in enumerate(rows, 1)
    ]
    print_table(["#", "Clinic", "Count", "Best", "Active"], table, [3, 30, 5, 4, 6])
    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clinicops",
        description="Clinic signal engine: tags, scores, alerts and streaks",
    )
    parser.add_argument("--db", default=None, help="SQLite store path (default: CLINICOPS_DB)")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Create config and store")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("audit", help="Run a tag/score/alert pass")
    p.add_argument("--dry-run", action="store_true", help="Compute without writing")
    p.add_argument("--batch-size", type=int, default=None)
    p.add_argument("--clinic", action="append", help="Limit to a clinic slug (repeatable)")
    p.add_argument("--json", action="store_true", help="Print the summary as JSON")
    p.set_defaults(func=cmd_audit)

    p = sub.add_parser("streaks", help="Run a streak pass")
    p.add_argument("--dry-run", action="store_true", help="Compute without writing")
    p.add_argument("--type", choices=sorted(DEFINITIONS_BY_TYPE), default=None)
    p.add_argument("--batch-size", type=int, default=None)
    p.add_argument("--clinic", action="append", help="Limit to a clinic slug (repeatable)")
    p.add_argument("--json", action="store_true", help="Print the summary as JSON")
    p.set_defaults(func=cmd_streaks)

    p = sub.add_parser("alerts", help="List active alerts")
    p.add_argument("--limit", type=int, default=50)
    p.set_defaults(func=cmd_alerts)

    p = sub.add_parser("resolve-alert", help="Manually resolve an active alert")
    p.add_argument("alert_id")
    p.set_defaults(func=cmd_resolve_alert)

    p = sub.add_parser("leaderboard", help="Streak leaderboard")
    p.add_argument("type", choices=sorted(DEFINITIONS_BY_TYPE))
    p.add_argument("--limit", type=int, default=10)
    p.set_defaults(func=cmd_leaderboard)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    json_logs = None if LOG_JSON is None else LOG_JSON == "1"
    configure_logging(args.log_level, json_logs)

    try:
        return args.func(args)
    except BatchFatalError as e:
        logger.error(f"Pass aborted: {e}")
        print(f"❌ Pass aborted: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
