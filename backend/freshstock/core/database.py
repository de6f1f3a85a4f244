from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from freshstock.core.config import settings

DATABASE_URL = settings.database_url

# SQLite needs check_same_thread, Postgres must NOT have it
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db():
    # import models so they register on Base.metadata
    from freshstock.models import business, notification, order, product, stock_movement, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
