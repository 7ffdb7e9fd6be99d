#!/usr/bin/env python3
"""Check that the Sellsy credentials in the environment can reach the API."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from autobill.config import get_settings  # noqa: E402
from autobill.core.errors import AutobillError  # noqa: E402
from autobill.core.logging import configure_logging  # noqa: E402
from autobill.main import check_connection  # noqa: E402

TROUBLESHOOTING = [
    "Check that SELLSY_CLIENT_ID and SELLSY_CLIENT_SECRET are correct.",
    "Make sure the Sellsy account has API access with the required scopes.",
    "Check the network connection.",
    "The Sellsy API may be temporarily unavailable, try again later.",
]


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level.upper(), json_output=settings.log_json)  # type: ignore[arg-type]
    try:
        check_connection(settings)
    except AutobillError as exc:
        print(f"Sellsy connection failed: {exc}")
        print("Troubleshooting:")
        for index, hint in enumerate(TROUBLESHOOTING, start=1):
            print(f"{index}. {hint}")
        return 1
    print("Sellsy connection OK, credentials are valid.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
