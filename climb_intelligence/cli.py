#!/usr/bin/env python3
"""
Command line runner for the climb intelligence engine.

Replays a recorded ride (FIT or CSV) through a full session, as a head unit
would have fed it live, and inspects the stored climb history:

  climb-intel replay ride.fit --ftp 250 --weight 70
  climb-intel history --climb route_0_1200
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from .core.alerts import log_sink
from .main import ClimbIntelligence, replay_ride
from .storage.csv_manager import CSVClimbStore
from .storage.data_models import AlertEvent
from .storage.records import ClimbRepository
from .utils.config import ClimbConfig, DetectionSensitivity, PacingMode, PacingTolerance
from .utils.formatting import format_duration


def _print_alert(event: AlertEvent):
    marker = "🚨" if event.urgent else "🔔"
    print(f"{marker} {event.title}: {event.detail}")
    log_sink(event)


def _format_date(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="climb-intel",
        description="Climb intelligence: W' balance, climb detection, pacing and PR tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example usage:
  climb-intel replay activity.fit --ftp 250 --weight 70
  climb-intel replay activity.csv --ftp 280 --weight 75 --mode race --sensitivity sensitive
  climb-intel history --limit 20
        """
    )
    parser.add_argument('--data-dir', default=None,
                        help='Directory for climbs, attempts and checkpoints (default: climb_data)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')

    # Also accepted after the subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--data-dir', default=argparse.SUPPRESS, help=argparse.SUPPRESS)
    common.add_argument('--verbose', '-v', action='store_true', default=argparse.SUPPRESS,
                        help=argparse.SUPPRESS)

    subparsers = parser.add_subparsers(dest='command', required=True)

    replay = subparsers.add_parser('replay', parents=[common],
                                   help='Replay a recorded ride through the engine')
    replay.add_argument('file', help='Path to ride file (FIT or CSV)')
    replay.add_argument('--ftp', type=int, required=True,
                        help='Functional Threshold Power in watts')
    replay.add_argument('--weight', type=float, required=True,
                        help='Rider weight in kg')
    replay.add_argument('--cp', type=int, default=0,
                        help='Critical power in watts (default: 95%% of FTP)')
    replay.add_argument('--w-prime', type=float, default=20000.0,
                        help="W' capacity in joules (default: 20000)")
    replay.add_argument('--sensitivity', choices=[s.name.lower() for s in DetectionSensitivity],
                        default='balanced', help='Climb detection preset (default: balanced)')
    replay.add_argument('--mode', choices=[m.name.lower() for m in PacingMode],
                        default='steady', help='Pacing mode (default: steady)')
    replay.add_argument('--tolerance', choices=[t.name.lower() for t in PacingTolerance],
                        default='normal', help='Pacing tolerance band (default: normal)')

    history = subparsers.add_parser('history', parents=[common],
                                    help='Show stored climbs and attempts')
    history.add_argument('--climb', help='Show all attempts for one climb ID')
    history.add_argument('--limit', type=int, default=20,
                         help='Number of recent attempts to show (default: 20)')

    return parser


def run_replay(args, config: ClimbConfig) -> int:
    if not os.path.exists(args.file):
        print(f"❌ Error: File '{args.file}' not found")
        return 1

    file_ext = Path(args.file).suffix.lower()
    if file_ext not in ('.fit', '.csv'):
        print(f"❌ Error: Unsupported file format '{file_ext}'. Supported: .fit, .csv")
        return 1

    config.set_athlete_profile(ftp=args.ftp, weight=args.weight, cp=args.cp,
                               w_prime_max=args.w_prime)
    config.set_detection_sensitivity(args.sensitivity)
    config.update_pacing_settings(mode=args.mode, tolerance=args.tolerance)
    try:
        config.validate_configuration()
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    athlete = config.athlete
    print("🚴 Climb Intelligence Replay")
    print("=" * 60)
    print(f"📁 Input file: {args.file}")
    print(f"⚡ FTP: {athlete.ftp}W  CP: {athlete.effective_cp:.0f}W  W': {athlete.w_prime_max:.0f}J")
    print(f"⚖️ Weight: {athlete.weight}kg")
    print(f"🔍 Detection: {config.detection.sensitivity.name.lower()}")
    print(f"🎯 Pacing: {config.pacing.mode.name.lower()} ±{config.pacing.tolerance_watts}W")
    print("=" * 60)

    app = ClimbIntelligence(config=config, data_dir=args.data_dir, alert_sink=_print_alert)
    try:
        summary = replay_ride(args.file, app=app)
    except Exception as e:
        logging.getLogger(__name__).exception("Replay failed")
        print(f"\n❌ Replay failed: {e}")
        return 1
    finally:
        app.shutdown()

    print("\n✅ Replay completed")
    print("-" * 40)
    print(f"📊 Samples: {summary.samples}")
    print(f"🏔️ Climbs: {len(summary.climbs)}")
    for name in summary.climbs:
        print(f"   {name}")
    print(f"💾 Attempts saved: {len(summary.attempts)}")
    print(f"🏆 New PRs: {summary.pr_count}")
    print(f"🔋 Final W': {summary.final_w_prime_balance:.0f}J ({summary.final_w_prime_percentage:.0f}%), "
          f"lowest {summary.min_w_prime_percentage:.0f}%")
    return 0


def run_history(args, config: ClimbConfig) -> int:
    repository = ClimbRepository(CSVClimbStore(args.data_dir, config))

    if args.climb:
        attempts = repository.get_attempts(args.climb)
        if not attempts:
            print(f"No attempts stored for {args.climb}")
            return 0
        print(f"🏔️ Attempts on {args.climb}")
        print("-" * 40)
        for attempt in attempts:
            marker = " 🏆" if attempt.is_pr else ""
            print(f"   {_format_date(attempt.date)}  {format_duration(attempt.time_ms / 1000)}  "
                  f"{attempt.avg_power}W  {attempt.avg_hr}bpm{marker}")
        return 0

    climbs = repository.get_all_climbs()
    print(f"🏔️ Stored climbs: {len(climbs)}")
    print("-" * 40)
    for climb in climbs:
        pr = repository.get_pr(climb.id)
        pr_text = format_duration(pr.time_ms / 1000) if pr else "--:--"
        print(f"   {climb.id}  {climb.name}  {climb.length / 1000:.1f}km @ {climb.avg_grade:.1f}%  PR {pr_text}")

    recent = repository.get_recent_attempts(args.limit)
    if recent:
        print("\n⏱️ Recent attempts")
        print("-" * 40)
        for attempt in recent:
            marker = " 🏆" if attempt.is_pr else ""
            print(f"   {_format_date(attempt.date)}  {attempt.climb_id}  "
                  f"{format_duration(attempt.time_ms / 1000)}{marker}")
    return 0


def main(argv=None) -> int:
    """Main entry point for the command line runner."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = ClimbConfig()
    if args.command == 'replay':
        return run_replay(args, config)
    return run_history(args, config)


if __name__ == "__main__":
    sys.exit(main())
