#!/usr/bin/env python3
"""
Balance Monitor - Runner

Starts the MCP server over stdio from a source checkout.
"""

import subprocess
import sys
from pathlib import Path


def main() -> None:
    """Run the Balance Monitor server as a module."""
    project_root = Path(__file__).parent

    cmd = [sys.executable, "-m", "balance_monitor.server"]

    try:
        subprocess.run(cmd, cwd=project_root)
    except KeyboardInterrupt:
        print("\nMonitor stopped.")
    except Exception as e:
        print(f"Error running monitor: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
