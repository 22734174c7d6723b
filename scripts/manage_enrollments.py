#!/usr/bin/env python3
"""CLI script for listing and deleting enrolled identities.

Usage:
    python scripts/manage_enrollments.py list
    python scripts/manage_enrollments.py delete --label alice
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from face_login.cli_utils import EXIT_FAILURE, EXIT_OK, print_section
from face_login.config import Config
from face_login.errors import StoreError
from face_login.logging_config import setup_logging
from face_login.store import JsonlEmbeddingStore

logger = setup_logging(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Manage enrolled face identities",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--store", type=str, default=None, help="Enrollment file (default: STORE_PATH)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("list", help="List enrolled identities")

    delete = subparsers.add_parser("delete", help="Delete every sample of an identity")
    delete.add_argument("--label", type=str, required=True, help="Identity label")
    delete.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    return parser.parse_args()


def main() -> int:
    """Main function."""
    args = parse_args()
    config = Config.from_env()
    store = JsonlEmbeddingStore(Path(args.store) if args.store else config.store_path)

    try:
        if args.command == "list":
            print_section(f"Enrolled Identities ({store.path})")
            labels = store.labels()
            if not labels:
                print("No enrollments yet")
            for label in labels:
                records = store.records_for_label(label)
                last = max(r.enrolled_at for r in records)
                print(f"  {label:<30} {len(records):>3} sample(s), last {last.isoformat()}")
            return EXIT_OK

        count = store.count_for_label(args.label)
        if count == 0:
            print(f"Label '{args.label}' is not enrolled")
            return EXIT_FAILURE

        if not args.yes:
            response = input(f"Delete {count} sample(s) for '{args.label}'? (y/N): ")
            if response.strip().lower() != "y":
                print("Deletion cancelled")
                return EXIT_OK

        removed = store.delete_label(args.label)
        print(f"Deleted {removed} sample(s) for '{args.label}'")
        logger.info(f"Deleted label '{args.label}' ({removed} samples)")
        return EXIT_OK

    except StoreError as e:
        print(f"Store error: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
