from sqlmodel import Session, SQLModel, create_engine

from ddsportal.core.config import settings


connect_args = {}

# SQLite connections are shared across the request threadpool
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)


def create_db_and_tables():
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
