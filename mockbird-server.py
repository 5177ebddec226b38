#!/usr/bin/env python3
"""
MockBird - hosted mock API execution server

This is a convenience wrapper that calls the packaged CLI.
The actual implementation is in src/mockbird/cli.py

Usage:
    python mockbird-server.py serve --fixtures fixtures/mocks.yaml --port 3001
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from mockbird.cli import main

if __name__ == '__main__':
    main()
