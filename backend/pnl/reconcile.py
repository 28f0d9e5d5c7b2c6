"""Re-synchronize ledger records with loan payments.

Run after bulk imports or whenever a toggle's ledger write may have been
lost: ``python -m pnl.reconcile`` or ``pnl-reconcile``.
"""

import logging

from pnl.core.config import settings
from pnl.core.logging import setup_logging
from pnl.db.session import SessionLocal
from pnl.services.sync import reconcile_all

log = logging.getLogger("pnl.reconcile")


def main():
    setup_logging(settings.log_level)

    db = SessionLocal()
    try:
        result = reconcile_all(db)
    finally:
        db.close()

    log.info("synced %s records to paid", result.synced)
    log.info("reverted %s records to unpaid", result.reverted)
    log.info("linked %s legacy records", result.linked)

if __name__ == "__main__":
    main()
