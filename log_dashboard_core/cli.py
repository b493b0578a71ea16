"""CLI for Log Dashboard Core — run / check subcommands.

Usage:
    python -m log_dashboard_core run   [--config] [--log-file] [--port] [--host] [--allowed-base] [--no-health]
    python -m log_dashboard_core check [--config] [--log-file]
"""

import argparse
import logging
import sys
from pathlib import Path


def _build_overrides(args) -> dict:
    overrides: dict = {}
    if getattr(args, "log_file", None):
        overrides.setdefault("log", {})["path"] = str(Path(args.log_file).resolve())
    if getattr(args, "allowed_base", None):
        overrides.setdefault("actions", {})["allowed_base"] = args.allowed_base
    if getattr(args, "no_health", False):
        overrides.setdefault("health", {})["enabled"] = False
    return overrides


def _resolve_config(args):
    """Explicit --config, else ./config.yaml if present, else defaults only."""
    if args.config:
        return str(Path(args.config).resolve())
    candidate = Path.cwd() / "config.yaml"
    if candidate.exists():
        return str(candidate)
    return None


# ── Subcommands ───────────────────────────────────────

def cmd_run(args) -> int:
    """Start the dashboard backend."""
    from .app import create_app

    config_path = _resolve_config(args)
    try:
        app = create_app(config_path=config_path, overrides=_build_overrides(args))
    except ValueError as e:
        print(f"\n  Error: {e}\n")
        return 1

    config = app.config["MONITOR_CONFIG"]
    dashboard_cfg = config.get("dashboard", {})
    host = args.host or dashboard_cfg.get("host", "0.0.0.0")
    port = args.port or dashboard_cfg.get("port", 5000)

    print(f"\n  Log Dashboard starting at http://{host}:{port}")
    print(f"  Config: {config_path or '(defaults)'}")
    print(f"  Log file: {config['log']['path']}")
    print()
    try:
        app.run(host=host, port=port, debug=False, threaded=True)
    finally:
        app.config["MONITOR_SERVICE"].stop()
    return 0


def cmd_check(args) -> int:
    """Parse the current log file once and print the resulting state summary."""
    from .app import load_config
    from .service import MonitorService

    try:
        config = load_config(_resolve_config(args), _build_overrides(args))
    except ValueError as e:
        print(f"\n  Error: {e}\n")
        return 1

    service = MonitorService(config)
    events = service.tailer.poll(force_full=True)
    service.aggregator.drain()
    snap = service.snapshot()

    print(f"\n  Log file: {service.log_path}")
    print(f"  Bytes read: {service.reader.offset}")
    print(f"  Events: {len(events)}")
    print(f"  Error lines: {snap['global']['errorCount']}")
    print(f"  Servers: {len(snap['servers'])}")
    for sid, rec in sorted(snap["servers"].items()):
        print(f"    {sid:<8} {rec['status']:<10} req={rec['requestCount']} "
              f"ok={rec['successCount']} err={rec['errorCount']} "
              f"avg={rec['averageProcessingTime']}ms")
    print(f"  Pending image requests: {len(snap['pendingImageRequests'])}")
    print()
    return 0


# ── Main ──────────────────────────────────────────────

def main() -> int:
    parser = argparse.ArgumentParser(
        prog="log_dashboard_core",
        description="Log Dashboard Core — live log tailing and fleet health backend",
    )
    parser.add_argument("--log-level", default="INFO",
                        help="Logging level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command")

    # --- run ---
    run_p = subparsers.add_parser("run", help="Start the dashboard backend")
    run_p.add_argument("--config", default=None, help="Config file path (default: ./config.yaml)")
    run_p.add_argument("--log-file", default=None, help="Override log.path")
    run_p.add_argument("--port", type=int, default=None, help="Override port")
    run_p.add_argument("--host", default=None, help="Override host")
    run_p.add_argument("--allowed-base", default=None,
                       help="Base directory folder-open requests must stay inside")
    run_p.add_argument("--no-health", action="store_true", help="Disable health probes")

    # --- check ---
    check_p = subparsers.add_parser("check", help="Parse the log file once and print a summary")
    check_p.add_argument("--config", default=None, help="Config file path")
    check_p.add_argument("--log-file", default=None, help="Override log.path")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "check":
        return cmd_check(args)

    return 0
