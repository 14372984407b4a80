from sqlmodel import SQLModel, create_engine, Session
from reviewgate.utils.logger import logger
from reviewgate.config.settings import DATABASE_URL, DEBUG_MODE

engine = None


def get_engine():
    global engine
    if engine is None:
        logger.info("Database engine is not initialized. Creating a new one.")
        connect_args = {}
        if DATABASE_URL.startswith("sqlite"):
            logger.info("Using SQLite database.")
            # Review workers touch the engine from pool threads.
            connect_args["check_same_thread"] = False
        else:
            logger.info("Using a non-SQLite database (e.g., PostgreSQL).")

        engine = create_engine(DATABASE_URL, echo=DEBUG_MODE, connect_args=connect_args)
        logger.info("Database engine created successfully.")
    return engine


def get_session():
    with Session(get_engine()) as session:
        yield session


def create_db_and_tables(db_engine=None):
    """Create missing tables directly from the models (dev and tests).

    Production databases are managed by alembic.
    """
    # Model import registers the table on SQLModel.metadata.
    from reviewgate.models.review_record import ReviewRecord  # noqa: F401

    SQLModel.metadata.create_all(db_engine or get_engine())
