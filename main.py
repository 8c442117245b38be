# main.py

import argparse
import json
import sys

from runehelp.api_client import HiscoresAPIClient
from runehelp.config import Settings, configure_logging
from runehelp.database import Database
from runehelp.exceptions import RuneHelpError
from runehelp.report_builder import DeltaReportBuilder, PlayerReport


def _safe_print(message: str) -> None:
    """Print with Unicode fallback for restricted terminal encodings."""
    try:
        print(message)
    except UnicodeEncodeError:
        print(message.encode("ascii", "replace").decode("ascii"))


def _signed(value: int) -> str:
    return f"+{value:,}" if value > 0 else f"{value:,}"


def format_report(report: PlayerReport) -> str:
    """Render the metrics that moved since the previous snapshot as a small table."""
    lines = [f"{report.username}  ({'cached' if report.cached else 'fresh'})"]
    if not report.has_previous_snapshot:
        lines.append("  First snapshot recorded; nothing to compare against yet.")

    skill_rows = [
        (name, d) for name, d in report.skills.items() if d.level_diff or d.xp_diff
    ]
    boss_rows = [(name, d) for name, d in report.bosses.items() if d.kills_diff]

    if report.has_previous_snapshot and not skill_rows and not boss_rows:
        lines.append("  No changes since the previous snapshot.")

    for name, d in skill_rows:
        lines.append(
            f"  {name:<14} lvl {d.level:>3} ({_signed(d.level_diff)})  "
            f"xp {d.xp:>12,} ({_signed(d.xp_diff)})"
        )
    for name, d in boss_rows:
        lines.append(f"  {name:<34} kc {d.kills:>6,} ({_signed(d.kills_diff)})")

    overall = report.skills.get("Overall")
    if overall is not None:
        lines.append(f"  Total level {overall.level:,}, total xp {overall.xp:,}")
    return "\n".join(lines)


def cmd_lookup(args, settings: Settings) -> int:
    db = Database(settings.db_path)
    try:
        builder = DeltaReportBuilder(db, HiscoresAPIClient.from_settings(settings))
        report = builder.get_player_report(args.username)
    except RuneHelpError as e:
        _safe_print(f"❌ {e.user_message}: {e}")
        return 1
    finally:
        db.close()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        _safe_print(format_report(report))
    return 0


def cmd_status(args, settings: Settings) -> int:
    db = Database(settings.db_path)
    try:
        player = db.get_player(args.username.strip())
        if not player:
            _safe_print(f"'{args.username}' has never been looked up.")
            return 1
        latest = db.get_latest_snapshot(player["player_id"])
        _safe_print(f"{player['username']}: {db.snapshot_count(player['username'])} snapshot(s)")
        if latest is not None:
            _safe_print(f"  Latest snapshot {latest.snapshot_id} at {latest.created_at.isoformat()}")
        return 0
    finally:
        db.close()


def cmd_serve(args, settings: Settings) -> int:
    import uvicorn

    _safe_print("Starting RuneHelp Web Server...")
    uvicorn.run("web.app:app", host=args.host or settings.host, port=args.port or settings.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track Old School RuneScape hiscores over time.")
    sub = parser.add_subparsers(dest="command", required=True)

    lookup = sub.add_parser("lookup", help="Fetch a player's report (respects the 5 minute cache)")
    lookup.add_argument("username")
    lookup.add_argument("--json", action="store_true", help="Print the raw report JSON")
    lookup.set_defaults(func=cmd_lookup)

    status = sub.add_parser("status", help="Show stored snapshot info for a player")
    status.add_argument("username")
    status.set_defaults(func=cmd_status)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
