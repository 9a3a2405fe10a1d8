#!/usr/bin/env python3
"""Create a client and print its pairing code (ops script).

Run from apps/api: python scripts/create_pairing_code.py --label "Jane"
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    from core.database import get_db_sync
    from services.pairing_codes import PairingCodeExhaustedError, create_client

    parser = argparse.ArgumentParser()
    parser.add_argument("--label", default=None, help="human-readable client label")
    args = parser.parse_args()

    db = get_db_sync()
    try:
        client_id, pairing_code = create_client(db, args.label)
    except PairingCodeExhaustedError as e:
        print(f"ERROR: {e}")
        return 1
    finally:
        db.close()

    print(f"Client ID:    {client_id}")
    print(f"Pairing Code: {pairing_code}")
    if args.label:
        print(f"Label:        {args.label}")
    print("\nEnter this pairing code in the app to pair the phone.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
