# app/database.py
from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

# Import models so SQLModel metadata is populated before create_all()
from app.models import order as _order_models  # noqa: F401
from app.models import supplier_order as _supplier_order_models  # noqa: F401
from app.models import transfer as _transfer_models  # noqa: F401


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Build the engine for the ledger store.

    Supabase Postgres (via pooler):
      - sslmode=require   : enforce SSL when running in the cloud
      - pool_size=1       : keep only 1 connection to the Supabase pooler
      - max_overflow=0    : do not open extra connections beyond the pool
      - pool_pre_ping=True: validate connections before using them

    Other URLs (SQLite for local runs) get the driver defaults.
    """
    if not database_url.startswith("postgres"):
        return create_engine(database_url, echo=echo)

    if "sslmode=" not in database_url:
        separator = "&" if "?" in database_url else "?"
        database_url = f"{database_url}{separator}sslmode=require"

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=1,
        max_overflow=0,
    )


def create_db_and_tables(engine: Engine) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.
    """
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    """
    FastAPI dependency that yields a Session bound to the engine the
    application created at startup (app.state.engine).
    """
    with Session(request.app.state.engine) as session:
        yield session
