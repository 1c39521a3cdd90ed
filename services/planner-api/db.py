import logging
from contextlib import contextmanager
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from tenacity import retry, stop_after_attempt, wait_exponential
from config import DATABASE_URL

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

Base = declarative_base()


@retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
    before_sleep=lambda retry_state: logger.warning(
        f"Base de datos no disponible, reintento {retry_state.attempt_number}: {retry_state.outcome.exception()}"
    ),
)
def wait_for_database():
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Conectado a la base de datos")


def disconnect():
    """Cerrar todas las conexiones del pool"""
    engine.dispose()
    logger.info("Base de datos desconectada")


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
