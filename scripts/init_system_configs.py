# init_system_configs.py
import logging
import sys
import os

sys.path.append(os.getcwd())

from app.dependencies import get_db_context
from app.services.system_config import seed_default_configs


def main():
    """Inserts default rows for every distribution config key that is missing."""
    with get_db_context() as db:
        created = seed_default_configs(db)
    print(f"Created {created} config entries. Existing entries were left untouched.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stdout, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    main()
