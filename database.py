from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from settings import get_settings


def resolve_database_url(url=None):
    # 1. Use the URL Render gives us
    # 2. Running locally (no env var) -> SQLite file next to the app
    if not url:
        return "sqlite:///./legion.db"
    # Render hands out postgres://, SQLAlchemy only understands postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def build_engine(url):
    if "sqlite" in url:
        return create_engine(url, connect_args={"check_same_thread": False})
    # PostgreSQL has no check_same_thread
    return create_engine(url, pool_pre_ping=True)


SQLALCHEMY_DATABASE_URL = resolve_database_url(get_settings().database_url)

engine = build_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
