# db.py
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker, declarative_base

from settings import settings

Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

_engine = None
_SessionLocal = None


def get_engine(url: Optional[str] = None):
    global _engine
    if url is not None:
        return create_engine(url, future=True, pool_pre_ping=True)
    if _engine is None:
        _engine = create_engine(settings.DATABASE_URL, future=True, pool_pre_ping=True)
    return _engine


def get_session_factory(engine=None) -> sessionmaker:
    global _SessionLocal
    if engine is not None:
        return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False,
                                     expire_on_commit=False, future=True)
    return _SessionLocal


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None):
    """Commit on success, roll back on error, always close."""
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine=None):
    # ensure models are imported before create_all
    from models_case import CaseRecord  # noqa: F401
    from models_rule import InstitutionRuleRecord  # noqa: F401
    Base.metadata.create_all(bind=engine or get_engine())
