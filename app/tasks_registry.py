# app/tasks_registry.py

from app.services import reconciliation, settlement

# --- Wrappers: each task opens its own DB session ---

async def run_settle_commissions():
    await settlement.settle_commissions_task()

async def run_recalculate_distributor_stats():
    # Manual runs only report, fixing balances is an explicit admin action
    await reconciliation.recalculate_distributor_stats_task(fix=False)


# --- Registry of the tasks that can be run by hand ---
# Key: task name used by the API and scripts/run_tasks_manually.py.
# 'function': the coroutine to await.
# 'description': shown in the admin panel.

TASKS = {
    "settle_commissions": {
        "function": run_settle_commissions,
        "description": "Moves confirmed commissions whose cooldown is over from pending to the available balance.",
        "is_async": True,
    },
    "recalculate_distributor_stats": {
        "function": run_recalculate_distributor_stats,
        "description": "Rebuilds distributor balances from orders and withdrawals and reports discrepancies.",
        "is_async": True,
    },
}

def get_tasks_list():
    return [
        {"task_name": name, "description": data["description"]}
        for name, data in TASKS.items()
    ]
