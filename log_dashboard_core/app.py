"""
Log Dashboard Core — Flask app factory.

Configuration is layered: package defaults.yaml, then the user's
config.yaml, then CLI overrides. Nested sections merge key by key.

Usage:
    from log_dashboard_core.app import create_app
    app = create_app(config_path="config.yaml")
    app = create_app(config_path="config.yaml", overrides={"log": {"path": "AegaServerLog.log"}})
    app.run(port=5000, threaded=True)
"""

from pathlib import Path
from typing import Optional

import yaml
from flask import Flask

from .service import MonitorService

CORE_DIR = Path(__file__).parent


# ── Helpers ────────────────────────────────────────────

def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base. Override values win."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _validate_config(config: dict) -> dict:
    """Validate config at startup. Returns sanitized config."""
    if not config.get("log", {}).get("path"):
        raise ValueError("config.yaml: log.path is required")

    for entry in config.get("health", {}).get("roster", []) or []:
        missing = [k for k in ("id", "host", "port") if k not in (entry or {})]
        if missing:
            raise ValueError(f"config.yaml: roster entry {entry!r} is missing {', '.join(missing)}")

    intervals = [
        ("log", "poll_interval_sec"),
        ("health", "interval_sec"),
        ("health", "timeout_sec"),
        ("state", "kpi_interval_sec"),
    ]
    for section, key in intervals:
        value = config.get(section, {}).get(key)
        if value is not None and value <= 0:
            raise ValueError(f"config.yaml: {section}.{key} must be positive")
    return config


def load_config(config_path: Optional[str] = None, overrides: Optional[dict] = None) -> dict:
    """defaults.yaml <- config.yaml <- overrides, validated."""
    defaults = {}
    defaults_path = CORE_DIR / "defaults.yaml"
    if defaults_path.exists():
        with open(defaults_path, encoding="utf-8") as f:
            defaults = yaml.safe_load(f) or {}

    project_config = {}
    if config_path:
        path = Path(config_path).resolve()
        if path.exists():
            with open(path, encoding="utf-8") as f:
                project_config = yaml.safe_load(f) or {}
        else:
            raise ValueError(f"config file not found: {path}")

    config = deep_merge(defaults, project_config)
    if overrides:
        config = deep_merge(config, overrides)
    return _validate_config(config)


# ── App Factory ────────────────────────────────────────

def create_app(config_path: Optional[str] = None, overrides: Optional[dict] = None,
               start_service: bool = True, folder_launcher=None) -> Flask:
    """Create the Flask dashboard backend.

    Args:
        config_path: Path to config.yaml (optional; defaults.yaml alone is not enough
            unless overrides supply log.path)
        overrides: Dict merged over the file config (CLI flags, tests)
        start_service: Start watcher, prober and aggregator threads immediately
        folder_launcher: Replacement for the host "reveal in file manager" action
    """
    config = load_config(config_path, overrides)

    service = MonitorService(config, folder_launcher=folder_launcher)

    app = Flask(__name__)
    app.config["MONITOR_CONFIG"] = config
    app.config["MONITOR_SERVICE"] = service
    app.config["SSE_HEARTBEAT_SEC"] = config.get("broadcast", {}).get("heartbeat_sec", 30)
    app.json.ensure_ascii = False

    from .monitor_routes import monitor_bp
    app.register_blueprint(monitor_bp)

    if start_service:
        service.start()
        print(f"[monitor] ✓ Watching {service.log_path}")

    return app
