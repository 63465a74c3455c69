#!/usr/bin/env python3
"""
Database Seeding Script - travel agency ledger.
Seeds the chart of accounts, the finance account map and the sequence
catalogue; optional CSV of opening vouchers for testing and UAT.
"""

import csv
import os
from decimal import Decimal


def read_csv(filepath: str) -> list[dict]:
    """Read a CSV file into a list of rows."""
    if not os.path.exists(filepath):
        return []
    with open(filepath, "r", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def main():
    """Main function."""
    print("=" * 60)
    print("Database Seeding - Travel Ledger")
    print("=" * 60)

    from travel_ledger.infrastructure.database import (
        SessionLocal,
        init_db,
        seed_default_accounts,
        seed_default_finance_accounts,
    )

    init_db()

    from travel_ledger.core.security import Actor
    from travel_ledger.domain.services import SequenceAllocator
    from travel_ledger.infrastructure.database.repositories import SqlSequenceStore

    db = SessionLocal()

    try:
        created = seed_default_accounts(db)
        print(f"✓ Chart of accounts: {created} accounts created")

        if seed_default_finance_accounts(db):
            print("✓ Finance account map: defaults stored")
        else:
            print("✓ Finance account map already configured")

        allocator = SequenceAllocator(SqlSequenceStore(SessionLocal))
        for counter in allocator.list_sequences():
            print(f"  {counter.type_key:<8} {counter.label:<28} next {allocator.peek(counter.type_key)}")

        # Optional opening balances: debit_account_id,credit_account_id,amount,description
        rows = read_csv(os.getenv("OPENING_VOUCHERS_CSV", "data/opening_vouchers.csv"))
        if rows:
            from travel_ledger.api.dependencies import get_audit_writer, get_finance_resolver, get_flows, get_sequence_allocator

            flows = get_flows(
                db=db,
                allocator=get_sequence_allocator(SessionLocal),
                resolver=get_finance_resolver(SessionLocal),
                audit=get_audit_writer(SessionLocal),
            )
            actor = Actor.system()
            for row in rows:
                result = flows.record_financial_transaction(
                    actor,
                    row["debit_account_id"],
                    row["credit_account_id"],
                    Decimal(row["amount"]),
                    source_type="journal",
                    description=row.get("description", "Opening balance"),
                )
                print(f"✓ Posted {result.invoice_number}")

        print("=" * 60)
        print("Seeding complete")
    except Exception as e:
        print(f"\n✗ Error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
