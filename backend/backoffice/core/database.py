"""
Database Configuration
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator

from backoffice.core.config import settings

# Get the properly formatted database URL
db_url = settings.database_url

# Create engine
engine = create_engine(
    db_url,
    connect_args={"check_same_thread": False} if "sqlite" in db_url else {},
    echo=settings.DEBUG
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base model
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.
    Anything not committed by the route is rolled back on close.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind=None):
    """Initialize database tables"""
    # Import all models to register them with Base
    from backoffice.models import (  # noqa: F401
        User, Client, Sale, Receipt, ExpenseCategory, Expense, ExpenseApproval,
        Cancellation, Refund, RefundApproval, Cheque, Employee, EmployeeCost,
        Ledger, BankAccount, CashAccount, AuditLog
    )
    Base.metadata.create_all(bind=bind or engine)
