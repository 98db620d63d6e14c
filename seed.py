import os

from loguru import logger
from sqlmodel import Session, select
from ddsportal.db.core import engine, create_db_and_tables
from ddsportal.db.schema import AdminUser, Organisation
from ddsportal.services.password import get_password_hash


# 1. Development admin (override through the environment)
DEV_ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@example.com")
DEV_ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "change-me-please")

# 2. Sample organisations for connection testing
SAMPLE_ORGANISATIONS = [
    "Northwind Timber Ltd",
    "Contoso Logistics",
    "Fabrikam Paper Mills",
]


def seed_admin(session: Session):
    """Creates the development admin if missing."""
    logger.info("--- Seeding Admin ---")

    admin = session.exec(
        select(AdminUser).where(AdminUser.email == DEV_ADMIN_EMAIL)).first()
    if not admin:
        admin = AdminUser(
            email=DEV_ADMIN_EMAIL,
            password_hash=get_password_hash(DEV_ADMIN_PASSWORD)
        )
        session.add(admin)
        logger.info(f"Created Admin: {DEV_ADMIN_EMAIL}")
    else:
        logger.info(f"Existing Admin: {DEV_ADMIN_EMAIL}")


def seed_organisations(session: Session):
    logger.info("--- Seeding Organisations ---")

    for name in SAMPLE_ORGANISATIONS:
        organisation = session.exec(
            select(Organisation).where(Organisation.name == name)).first()
        if not organisation:
            session.add(Organisation(name=name))
            logger.info(f"Created Organisation: {name}")
        else:
            logger.info(f"Existing Organisation: {name}")


def main():
    create_db_and_tables()

    with Session(engine) as session:
        try:
            seed_admin(session)
            seed_organisations(session)
            session.commit()
            logger.success("Database seeding completed successfully.")
        except Exception:
            session.rollback()
            logger.exception("Seeding failed")
            raise


if __name__ == "__main__":
    main()
