#!/usr/bin/env python3
"""Generate today's subscription invoices in Sellsy from the Airtable records."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from autobill.main import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
