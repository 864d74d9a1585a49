"""
Receipts recorded against sales.
"""
from datetime import date
from decimal import Decimal

import pytest

from backoffice.core.exceptions import InvalidAmountError, MissingFieldError, NotFoundError
from backoffice.models import Receipt
from backoffice.schemas import InstrumentDetails, PaymentMethodEnum, ReceiptCreate, ReceiptTypeEnum
from backoffice.services.sales_service import ReceiptService


def _receipt(sale, amount="250000.00", method=PaymentMethodEnum.CASH, **kwargs):
    return ReceiptCreate(sale_id=sale.id, amount=Decimal(amount), payment_method=method, **kwargs)


class TestCreateReceipt:

    def test_numbered_per_month(self, db, make_sale, account_manager):
        sale = make_sale()
        service = ReceiptService(db)
        first = service.create(_receipt(sale, receipt_date=date(2024, 3, 5)), account_manager)
        second = service.create(_receipt(sale, receipt_date=date(2024, 3, 20)), account_manager)
        april = service.create(_receipt(sale, receipt_date=date(2024, 4, 1)), account_manager)

        assert first.receipt_number == "RCP-2024-03-00001"
        assert second.receipt_number == "RCP-2024-03-00002"
        assert april.receipt_number == "RCP-2024-04-00001"

    def test_client_taken_from_sale(self, db, make_sale, buyer, account_manager):
        receipt = ReceiptService(db).create(
            _receipt(make_sale(), receipt_type=ReceiptTypeEnum.BOOKING), account_manager
        )
        assert receipt.client_id == buyer.id
        assert receipt.receipt_type == "Booking"
        assert receipt.created_by == account_manager.id

    def test_amount_positive(self, db, make_sale, account_manager):
        with pytest.raises(InvalidAmountError):
            ReceiptService(db).create(_receipt(make_sale(), amount="0"), account_manager)
        assert db.query(Receipt).count() == 0

    def test_unknown_sale(self, db, account_manager):
        with pytest.raises(NotFoundError) as exc:
            ReceiptService(db).create(
                ReceiptCreate(sale_id=404, amount=Decimal("10"), payment_method=PaymentMethodEnum.CASH),
                account_manager
            )
        assert exc.value.code == "SALE_NOT_FOUND"

    def test_cheque_payment_needs_instrument(self, db, make_sale, account_manager):
        with pytest.raises(MissingFieldError):
            ReceiptService(db).create(
                _receipt(make_sale(), method=PaymentMethodEnum.CHEQUE), account_manager
            )

    def test_instrument_dropped_for_cash(self, db, make_sale, account_manager):
        receipt = ReceiptService(db).create(_receipt(
            make_sale(),
            instrument_details=InstrumentDetails(bank_name="HBL", cheque_number="77"),
        ), account_manager)
        assert receipt.instrument_bank_name is None
        assert receipt.instrument_cheque_number is None


class TestReceiptRoutes:

    def test_record_and_list(self, client, auth, make_sale, account_manager):
        sale = make_sale()
        response = client.post("/api/v1/receipts", json={
            "sale_id": sale.id,
            "amount": "125000.00",
            "payment_method": "Bank Transfer",
            "receipt_date": "2024-05-02",
        }, headers=auth(account_manager))
        assert response.status_code == 201
        assert response.json()["data"]["receipt_number"] == "RCP-2024-05-00001"

        listed = client.get(f"/api/v1/receipts?sale_id={sale.id}", headers=auth(account_manager)).json()
        assert [r["id"] for r in listed["data"]] == [response.json()["data"]["id"]]

    def test_missing_receipt(self, client, auth, account_manager):
        response = client.get("/api/v1/receipts/999", headers=auth(account_manager))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RECEIPT_NOT_FOUND"
