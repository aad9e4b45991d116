from sqlalchemy import create_engine, MetaData
from sqlalchemy.orm import (
    sessionmaker,
    DeclarativeBase,
    scoped_session,
    Session as SqlalchemySession,
)


from settings import DATABASE_URL

IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    # scanners and admissions hit the file from several threads at once
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=20,
        max_overflow=0,
        pool_timeout=300,
    )
db = sessionmaker(engine, future=True)
factory_session = scoped_session(db)


def get_db_sync():
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_db_sync_for_test(db: SqlalchemySession):
    def inner():
        yield db

    return inner


"""SQLAlchemy doesn't default to any schema, and PostgreSQL expects it.
    This ensures all models are created in the `public` schema.
    SQLite has no schemas, so local runs keep the default one.
"""


class Base(DeclarativeBase):
    metadata = MetaData(schema=None if IS_SQLITE else "public")


# define all model for alembic migration
from models.User import User  # NOQA
from models.Token import Token  # NOQA
from models.Activity import Activity  # NOQA
from models.Enrollment import Enrollment  # NOQA
from models.Ticket import Ticket  # NOQA
