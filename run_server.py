#!/usr/bin/env python
"""
Production Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py
    Gunicorn:     python run_server.py --gunicorn
"""

import argparse
import subprocess

from olist_kpis.cli import main as cli_main


def run_gunicorn() -> int:
    """Run with Gunicorn (recommended for production)."""
    cmd = ["gunicorn", "olist_kpis.main:app", "-c", "gunicorn.conf.py"]
    return subprocess.run(cmd).returncode


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Olist KPI API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn (production)")
    parser.add_argument("--port", type=int, default=None, help="Port to run on")
    args = parser.parse_args()

    if args.gunicorn:
        raise SystemExit(run_gunicorn())

    argv = ["serve"]
    if args.dev:
        argv.append("--dev")
    if args.port:
        argv += ["--port", str(args.port)]
    raise SystemExit(cli_main(argv))
