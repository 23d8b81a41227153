from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def create_session_factory(database_url: str) -> sessionmaker:
    # SQLite needs check_same_thread=False for FastAPI
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

    engine = create_engine(
        database_url,
        connect_args=connect_args,
        echo=False,
    )
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_schema(session_factory: sessionmaker) -> None:
    """Create missing tables (vpn-server-api-init, tests); migrations go through alembic."""
    import vpn_server_api.models  # noqa: F401 - load models

    Base.metadata.create_all(bind=session_factory.kw["bind"])


def get_db(request: Request):
    db = request.app.state.context.session_factory()
    try:
        yield db
    finally:
        db.close()
