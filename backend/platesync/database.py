from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import DATABASE_URL

Base = declarative_base()


def create_db_engine(url: str = DATABASE_URL) -> Engine:
    if url.startswith("sqlite"):
        sqlite_args = {"check_same_thread": False, "timeout": 30}
    else:
        sqlite_args = {}
    return create_engine(url, connect_args=sqlite_args)


def create_session_factory(bind: str | Engine = DATABASE_URL) -> sessionmaker:
    engine = create_db_engine(bind) if isinstance(bind, str) else bind
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
