"""Command-line interface for the invoice/schedule import."""

from __future__ import annotations

import argparse
import logging
import sys

from .runner import run_import

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Match invoices against a delivery schedule and report audit scope"
    )
    parser.add_argument(
        "--workbook",
        required=True,
        help="Excel workbook containing the invoice register",
    )
    parser.add_argument(
        "--schedule",
        required=True,
        help="Excel workbook containing the delivery schedule",
    )
    parser.add_argument(
        "--invoice-sheet",
        help="Worksheet holding the invoices (defaults to the first sheet)",
    )
    parser.add_argument("--output", help="Optional JSON output path")
    parser.add_argument(
        "--verbose", action="store_true", help="Log debug messages"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    path = run_import(
        args.workbook,
        args.schedule,
        output_path=args.output,
        invoice_sheet=args.invoice_sheet,
    )
    print(f"Report written to {path}")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
