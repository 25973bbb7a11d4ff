#!/usr/bin/env python3
"""Show pending income records and fiscal-window KPIs from the configured store."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from commercial_tracker.config import ConfigError, configure_logging, load_settings
from commercial_tracker.formatting import format_currency
from commercial_tracker.session import TrackerSession
from commercial_tracker.views import ledger_table


def main(limit: int = 50) -> int:
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}")
        return 1
    configure_logging(settings.log_level)
    session = TrackerSession(settings=settings)
    if not session.start():
        print("Could not connect to the tracker store; see the log for details.")
        return 1
    try:
        pending = ledger_table(session.income.pending(), session.partners.resolve_name)
        if pending.empty:
            print("No pending income entries. 🎉")
        else:
            print(f"Pending entries: {len(pending)}")
            print(pending.drop(columns=['id']).head(limit).to_string(index=False))

        result = session.summary()
        print(f"\nFiscal window {session.settings.fiscal_start} to {session.settings.fiscal_end}")
        print(f"Total income (posted): {format_currency(result.total_income)}")
        print(f"Total budget:          {format_currency(result.total_budget)}")
        print(f"Variance:              {format_currency(result.variance)}")
        monthly = result.monthly_frame()
        if not monthly.empty:
            print("\nBy month:")
            with pd.option_context('display.float_format', '{:,.2f}'.format):
                print(monthly.to_string())
    finally:
        session.close()
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Show pending income entries and KPIs.')
    parser.add_argument('--limit', type=int, default=50, help='How many pending entries to show')
    args = parser.parse_args()
    sys.exit(main(limit=args.limit))
