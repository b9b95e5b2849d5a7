#!/usr/bin/env python3
"""
Build a news edition in-process (no API server) and print the JSON payload.

Usage:
    python3 scripts/build_edition.py --categories global,business,tech
"""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.news.service import main


if __name__ == "__main__":
    raise SystemExit(main())
