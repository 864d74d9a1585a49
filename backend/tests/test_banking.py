"""
Bank and cash accounts.
"""
from decimal import Decimal

import pytest

from backoffice.core.exceptions import DuplicateEntryError, NotFoundError
from backoffice.schemas import (
    BankAccountCreate, BankAccountUpdate, BankAccountTypeEnum, CashAccountCreate, CashAccountUpdate
)
from backoffice.services.banking_service import BankAccountService, CashAccountService


def _bank_account(number="0102-0000001"):
    return BankAccountCreate(
        account_name="Operations",
        bank_name="Meezan Bank",
        account_number=number,
        opening_balance=Decimal("500000.00"),
    )


class TestBankAccounts:

    def test_opening_balance_is_current_balance(self, db):
        account = BankAccountService(db).create(_bank_account())
        assert account.current_balance == Decimal("500000.00")
        assert account.account_type == BankAccountTypeEnum.CURRENT.value

    def test_account_number_is_unique(self, db):
        service = BankAccountService(db)
        service.create(_bank_account())
        db.commit()
        with pytest.raises(DuplicateEntryError):
            service.create(_bank_account())

    def test_update_and_soft_delete(self, db):
        service = BankAccountService(db)
        account = service.create(_bank_account())
        service.update(account.id, BankAccountUpdate(account_type=BankAccountTypeEnum.SAVINGS))
        assert account.account_type == "Savings"

        service.delete(account.id)
        db.commit()
        assert service.get_all() == []
        with pytest.raises(NotFoundError):
            service.get_or_404(account.id)


class TestCashAccounts:

    def test_names_are_unique_ignoring_case(self, db):
        service = CashAccountService(db)
        service.create(CashAccountCreate(name="Petty Cash"))
        db.commit()
        with pytest.raises(DuplicateEntryError):
            service.create(CashAccountCreate(name="petty cash"))

    def test_rename_onto_existing_name(self, db):
        service = CashAccountService(db)
        service.create(CashAccountCreate(name="Petty Cash"))
        site = service.create(CashAccountCreate(name="Site Office"))
        db.commit()
        with pytest.raises(DuplicateEntryError):
            service.update(site.id, CashAccountUpdate(name="Petty Cash"))

    def test_create_and_list_over_http(self, client, auth, hof, account_manager):
        created = client.post("/api/v1/cash-accounts", json={"name": "Head Office Till"},
                              headers=auth(hof))
        assert created.status_code == 201
        assert Decimal(created.json()["data"]["current_balance"]) == Decimal("0")

        listed = client.get("/api/v1/cash-accounts", headers=auth(account_manager)).json()["data"]
        assert [a["name"] for a in listed] == ["Head Office Till"]
