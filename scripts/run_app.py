#!/usr/bin/env python
"""
Run the Streamlit cart preview.

Usage:
    python scripts/run_app.py [--port 8501] [--data-dir path/to/csvs]
"""
import argparse
import os
import subprocess
import sys
from pathlib import Path


def main():
    parser = argparse.ArgumentParser(description="Storefront cart preview")
    parser.add_argument("--port", default="8501")
    parser.add_argument("--data-dir", help="CSV catalog directory (default: packaged seed data)")
    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    ui_path = project_root / 'src' / 'storefront_pricing' / 'ui' / 'app_streamlit.py'

    if not ui_path.exists():
        print(f"ERROR: UI module not found at {ui_path}")
        sys.exit(1)

    env = os.environ.copy()
    if args.data_dir:
        env["STOREFRONT_DATA_DIR"] = str(Path(args.data_dir).resolve())

    cmd = [sys.executable, '-m', 'streamlit', 'run', str(ui_path), '--server.port', args.port]
    print(f"Starting Streamlit: {' '.join(cmd)}")

    try:
        subprocess.run(cmd, cwd=str(project_root), env=env)
    except KeyboardInterrupt:
        print("\nApplication stopped.")


if __name__ == "__main__":
    main()
