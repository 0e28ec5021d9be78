"""
Balance Reconciliation Script.

Checks every client balance against the sum of its work transactions and
repairs the ones that drifted. Each repair leaves a balance_correction
entry in the balance history.

Usage:
    python scripts/reconcile_balances.py            # validate and repair
    python scripts/reconcile_balances.py --dry-run  # validate only
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from backend.app.core.observability import configure_logging
from backend.app.db.session import AsyncSessionLocal, engine
from backend.app.domain.ledger.reconciliation import BalanceReconciler
from backend.app.models.client import Client


async def validate_all() -> int:
    """Report drifted clients without touching them. Returns the drift count."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Client.id).order_by(Client.id))
        client_ids = list(result.scalars().all())

        drifted = 0
        for client_id in client_ids:
            validation = await BalanceReconciler.validate_balance(db, client_id)
            if not validation.is_consistent:
                drifted += 1
                print(
                    f"⚠️  Client {client_id}: stored {validation.stored_balance}, "
                    f"calculated {validation.calculated_balance} (difference {validation.difference})"
                )

    print(f"\nChecked {len(client_ids)} clients, {drifted} drifted")
    return drifted


async def repair_all() -> int:
    """Repair every drifted client. Returns the number of failures."""
    report = await BalanceReconciler.repair_all_balances(AsyncSessionLocal)

    for correction in report.corrections:
        print(
            f"✅ Client {correction.client_id}: {correction.old_balance} -> {correction.new_balance} "
            f"(history entry {correction.history_entry_id})"
        )
    for failure in report.failures:
        print(f"❌ Client {failure.client_id}: {failure.error}")

    print(
        f"\nProcessed {report.clients_processed} clients, "
        f"{len(report.corrections)} corrected, {len(report.failures)} failed"
    )
    return len(report.failures)


async def main(dry_run: bool) -> int:
    configure_logging()
    try:
        if dry_run:
            await validate_all()
            return 0
        failures = await repair_all()
        return 1 if failures else 0
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Validate and repair client balances")
    parser.add_argument("--dry-run", action="store_true", help="Only report drift, do not repair")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.dry_run)))
