#!/usr/bin/env python3
"""
Quick launcher for Log Dashboard Core.

Usage:
    python run_dashboard.py run --log-file <path> [--port PORT] [--config config.yaml]
    python run_dashboard.py check --log-file <path>

Examples:
    python run_dashboard.py run --log-file C:\\tomcat-8.5.82\\golfApp\\webapps\\logs\\AegaServerLog.log
    python run_dashboard.py run --config config.yaml --port 5000 --allowed-base C:\\maps

This is equivalent to:
    python -m log_dashboard_core run ...
"""

import sys
import os

# Ensure the package is importable (works from any directory)
_this_dir = os.path.dirname(os.path.abspath(__file__))
if _this_dir not in sys.path:
    sys.path.insert(0, _this_dir)

from log_dashboard_core.cli import main

sys.exit(main())
