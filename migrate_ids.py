"""
Supplier link ID maintenance.

    python migrate_ids.py migrate            # move legacy ids to 'XXXX-XXXX'
    python migrate_ids.py history            # list recorded migrations
    python migrate_ids.py rollback K7QD-2M9X # undo one migration
    python migrate_ids.py validate           # report active ids not in the new format
"""
import argparse
import sys

from loguru import logger
from sqlmodel import Session

from ddsportal.core.exceptions import AppException
from ddsportal.db import core as db_core
from ddsportal.services.supplier_link import SupplierLinkService


def run(command: str, new_id: str = None) -> int:
    with Session(db_core.engine) as session:
        service = SupplierLinkService(session)

        if command == "migrate":
            report = service.migrate_supplier_ids()
            logger.info(f"{len(report.migrated)}/{report.total} migrated")
            for failure in report.failed:
                logger.error(f"  {failure['old_id']}: {failure['error']}")
            return 1 if report.failed else 0

        if command == "history":
            for record in service.migration_history():
                logger.info(f"{record.migrated_at:%Y-%m-%d %H:%M} {record.old_id} -> {record.new_id}")
            return 0

        if command == "rollback":
            record = service.rollback_migration(new_id)
            logger.info(f"Restored {record.old_id} (was {record.new_id})")
            return 0

        report = service.validate_all_supplier_ids()
        logger.info(f"{report.valid}/{report.total} active supplier ids are valid")
        for invalid_id in report.invalid_ids:
            logger.warning(f"  invalid: {invalid_id}")
        return 1 if report.invalid else 0


def main():
    parser = argparse.ArgumentParser(description="Supplier link ID maintenance")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("migrate", help="Migrate legacy ids to the 'XXXX-XXXX' format")
    sub.add_parser("history", help="List recorded migrations")
    rollback = sub.add_parser("rollback", help="Reverse one migration")
    rollback.add_argument("new_id", help="The id the link was migrated to")
    sub.add_parser("validate", help="Check active ids against the format")

    args = parser.parse_args()

    try:
        sys.exit(run(args.command, getattr(args, "new_id", None)))
    except AppException as e:
        logger.error(e.message)
        sys.exit(1)


if __name__ == "__main__":
    main()
