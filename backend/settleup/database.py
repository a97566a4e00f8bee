"""Database engine and session dependency."""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from settleup.config import DATABASE_URL, DB_TIMEOUT_SECONDS

if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False, "timeout": DB_TIMEOUT_SECONDS}
else:
    connect_args = {"connect_timeout": int(DB_TIMEOUT_SECONDS)}

engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
