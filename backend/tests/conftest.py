"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database. Service tests use the
``db`` session directly; route tests go through ``client``, whose requests
open their own sessions on the same in-memory database.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-characters")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.core.config import settings
from backoffice.core.database import Base, get_db, init_db
from backoffice.main import app
from backoffice.models import (
    Cancellation, CancellationStatus, Client, Employee, ExpenseCategory, Sale, User, UserRole
)
from backoffice.schemas import ExpenseCreate, PaymentMethodEnum
from backoffice.services.expense_service import ExpenseService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------

def _make_user(db, username, role):
    user = User(username=username, full_name=username.title(), role=role.value, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return _make_user(db, "admin", UserRole.ADMIN)


@pytest.fixture
def account_manager(db):
    return _make_user(db, "accounts", UserRole.ACCOUNT_MANAGER)


@pytest.fixture
def hof(db):
    return _make_user(db, "hof", UserRole.HOF)


def auth_header(user):
    token = jwt.encode({"sub": user.username}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth():
    return auth_header


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@pytest.fixture
def category(db):
    category = ExpenseCategory(name="Utilities")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture
def make_expense(db, category):
    def _make(user, amount="2500.00", payment_method=PaymentMethodEnum.CASH, **kwargs):
        data = ExpenseCreate(
            category_id=category.id,
            amount=Decimal(amount),
            expense_date=kwargs.pop("expense_date", date(2024, 3, 15)),
            description=kwargs.pop("description", "Electricity bill"),
            payment_method=payment_method,
            **kwargs
        )
        expense = ExpenseService(db).create(data, user)
        db.commit()
        return expense
    return _make


@pytest.fixture
def buyer(db):
    client = Client(name="Ayesha Khan", phone="0300-0000000")
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


@pytest.fixture
def make_sale(db, buyer):
    counter = {"n": 0}

    def _make(paid_amount="1000000.00", total_price="2500000.00"):
        counter["n"] += 1
        sale = Sale(
            sale_number=f"SL-{counter['n']:04d}",
            client_id=buyer.id,
            total_price=Decimal(total_price),
            paid_amount=Decimal(paid_amount),
            sale_date=date(2023, 6, 1),
        )
        db.add(sale)
        db.commit()
        db.refresh(sale)
        return sale
    return _make


@pytest.fixture
def approved_cancellation(db, make_sale, admin):
    """Approved cancellation whose refundable amount is set directly"""
    def _make(refundable="1000000.00"):
        sale = make_sale(paid_amount=refundable)
        cancellation = Cancellation(
            sale_id=sale.id,
            cancellation_date=date(2024, 1, 15),
            reason="Buyer relocating",
            total_paid=Decimal(refundable),
            office_charge_percent=Decimal("0"),
            office_charge_amount=Decimal("0"),
            other_deductions=Decimal("0"),
            refundable_amount=Decimal(refundable),
            refunded_amount=Decimal("0"),
            remaining_refund=Decimal(refundable),
            status=CancellationStatus.APPROVED.value,
            approved_by=admin.id,
            created_by=admin.id,
        )
        db.add(cancellation)
        db.commit()
        db.refresh(cancellation)
        return cancellation
    return _make


@pytest.fixture
def employee(db):
    employee = Employee(employee_code="EMP-001", full_name="Bilal Ahmed", designation="Sales Agent")
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee
