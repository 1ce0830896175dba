# run_tasks_manually.py
import argparse
import asyncio
import logging
import sys
import os

# Makes `app` importable when run from the repo root
sys.path.append(os.getcwd())

from app.services.reconciliation import recalculate_distributor_stats_task
from app.services.settlement import settle_commissions_task


async def main(fix_balances: bool):
    """
    Runs the distribution background tasks one after another.
    """
    print("--- Manual Task Runner ---")

    print("\n[1/2] Running: settle_commissions_task...")
    result = await settle_commissions_task()
    print(f"Done. settled={result.settled_count} failed={result.failed_count} skipped={result.skipped_count}")
    for error in result.errors:
        print(f"  ! {error}")

    print("\n[2/2] Running: recalculate_distributor_stats_task...")
    report = await recalculate_distributor_stats_task(fix=fix_balances)
    print(
        f"Done. checked={report.checked_count} discrepancies={len(report.discrepancies)} "
        f"negative={len(report.negative_balances)} fixed={report.fixed_count} held={report.held_count}"
    )
    for item in report.discrepancies:
        print(f"  {item.code} {item.field}: stored {item.stored}, expected {item.expected}")
    for item in report.deficits:
        flag = "alert open" if item.open_shortfall_alert else "no open alert"
        print(f"  {item.code} deficit {item.deficit} ({flag})")

    print("\n--- All tasks completed! ---")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run distribution tasks by hand.")
    parser.add_argument("--fix-balances", action="store_true", help="Overwrite stored balances with the recalculated ones")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, stream=sys.stdout, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        asyncio.run(main(args.fix_balances))
    except KeyboardInterrupt:
        print("\nScript interrupted by user.")
