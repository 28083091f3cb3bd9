"""
Ledger Export Verification Script

Checks the Excel ledger written by the Celery worker.
Run from project root: python scripts/verify.py
"""

import sys
from datetime import datetime

import pandas as pd

from food_ordering.services.ledger_export import LedgerExporter

REQUIRED_COLUMNS = ["event", "order_id", "purchaser_email", "total_amount", "status"]
KNOWN_EVENTS = {"placed", "status_changed", "removed"}


def verify_ledger() -> bool:
    """Verify ledger file integrity."""
    ledger_file = LedgerExporter.ledger_path()

    print("=" * 60)
    print("🔍 LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {ledger_file}")
    print("=" * 60)

    if not ledger_file.exists():
        print("\n❌ Ledger file not found!")
        print("   Start a worker and place some orders first.")
        return False

    df = pd.read_excel(ledger_file, engine="openpyxl")
    print(f"\n📊 Events: {len(df)}")

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
        return False
    print("✅ All required columns present")

    unknown = set(df["event"].dropna()) - KNOWN_EVENTS
    if unknown:
        print(f"⚠️ Unknown events: {sorted(unknown)}")

    placed = df[df["event"] == "placed"]
    duplicates = placed["order_id"].duplicated().sum()
    if duplicates:
        print(f"⚠️ {duplicates} orders placed more than once!")
    else:
        print("✅ Each order placed once")

    print(f"\n💰 Placed total: ${placed['total_amount'].sum():.2f}")

    print("\n📋 RECENT EVENTS:")
    print("-" * 60)
    print(df[REQUIRED_COLUMNS].tail(5).to_string(index=False))

    return not missing and not duplicates


if __name__ == "__main__":
    sys.exit(0 if verify_ledger() else 1)
