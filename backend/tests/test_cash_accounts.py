# Overview: Pytest coverage for treasury accounts and payment method routing.

from decimal import Decimal

import pytest

from ledgerpos.errors import InsufficientFunds, NotFound, SameAccountTransfer, ValidationError
from ledgerpos.models import CashAccountMovement
from ledgerpos.services import cash_account_service as treasury


D = Decimal


class TestManualMovements:

    def test_received_then_paid(self, db_session, tenant, cash_account):
        received = treasury.record_manual_movement(
            tenant_id=tenant.id, account_id=cash_account.id, movement_type="RECEIVED",
            amount="100", concept="Owner deposit",
        )
        paid = treasury.record_manual_movement(
            tenant_id=tenant.id, account_id=cash_account.id, movement_type="PAID",
            amount="40", concept="Supplier", reference="INV-7",
        )

        assert received.balance_after == D("100.00")
        assert paid.balance_before == D("100.00")
        assert paid.balance_after == D("60.00")
        assert paid.amount == D("40.00")
        db_session.refresh(cash_account)
        assert cash_account.current_balance == D("60.00")

    def test_paid_cannot_overdraw(self, db_session, tenant, cash_account):
        with pytest.raises(InsufficientFunds) as exc:
            treasury.record_manual_movement(
                tenant_id=tenant.id, account_id=cash_account.id, movement_type="PAID",
                amount="0.01", concept="Too much",
            )
        assert exc.value.details == {"available": "0.00", "required": "0.01"}
        assert db_session.query(CashAccountMovement).count() == 0

    @pytest.mark.parametrize("movement_type,amount,concept", [
        ("SALE_INCOME", "10", "Manual sale income"),
        ("RECEIVED", "0", "Zero"),
        ("RECEIVED", "10", ""),
    ])
    def test_invalid_input(self, db_session, tenant, cash_account, movement_type, amount, concept):
        with pytest.raises(ValidationError):
            treasury.record_manual_movement(
                tenant_id=tenant.id, account_id=cash_account.id, movement_type=movement_type,
                amount=amount, concept=concept,
            )

    def test_other_tenant_account(self, db_session, other_tenant, cash_account):
        with pytest.raises(NotFound):
            treasury.list_movements(other_tenant.id, cash_account.id)


class TestTransfers:

    def test_transfer_posts_linked_pair(self, db_session, tenant, cash_account, bank_account):
        treasury.record_manual_movement(
            tenant_id=tenant.id, account_id=bank_account.id, movement_type="RECEIVED",
            amount="500", concept="Deposit",
        )

        out_movement, in_movement = treasury.transfer(
            tenant_id=tenant.id, from_account_id=bank_account.id, to_account_id=cash_account.id,
            amount="120", concept="Change float",
        )

        assert out_movement.movement_type == "TRANSFER_OUT"
        assert out_movement.related_account_id == cash_account.id
        assert out_movement.balance_after == D("380.00")
        assert in_movement.movement_type == "TRANSFER_IN"
        assert in_movement.related_account_id == bank_account.id
        assert in_movement.balance_after == D("120.00")

    def test_same_account(self, db_session, tenant, cash_account):
        with pytest.raises(SameAccountTransfer):
            treasury.transfer(
                tenant_id=tenant.id, from_account_id=cash_account.id, to_account_id=cash_account.id,
                amount="1", concept="Loop",
            )

    def test_insufficient_source_balance(self, db_session, tenant, cash_account, bank_account):
        with pytest.raises(InsufficientFunds):
            treasury.transfer(
                tenant_id=tenant.id, from_account_id=cash_account.id, to_account_id=bank_account.id,
                amount="1", concept="Deposit",
            )
        assert db_session.query(CashAccountMovement).count() == 0


class TestSaleIncomeRouting:

    def test_mapped_method_credits_account(self, db_session, tenant, bank_account):
        movement = treasury.post_sale_income(
            tenant_id=tenant.id, payment_method="DEBIT_CARD", amount="75.5", concept="Sale SALE-000001 - DEBIT_CARD",
        )
        db_session.commit()
        assert movement.cash_account_id == bank_account.id
        assert movement.amount == D("75.50")
        assert movement.balance_after == D("75.50")

    def test_unmapped_method_posts_nothing(self, db_session, tenant, bank_account):
        assert treasury.post_sale_income(
            tenant_id=tenant.id, payment_method="QR", amount="10", concept="Sale",
        ) is None
        assert db_session.query(CashAccountMovement).count() == 0

    def test_mapping_is_replaced(self, db_session, tenant, cash_account, bank_account):
        treasury.set_payment_method_account(
            tenant_id=tenant.id, payment_method="DEBIT_CARD", cash_account_id=cash_account.id,
        )
        assert treasury.mapped_account_id(tenant.id, "DEBIT_CARD") == cash_account.id
        assert treasury.mapped_account_id(tenant.id, "CREDIT_CARD") == bank_account.id

    def test_unknown_method_rejected(self, db_session, tenant, bank_account):
        with pytest.raises(ValidationError):
            treasury.set_payment_method_account(
                tenant_id=tenant.id, payment_method="BITCOIN", cash_account_id=bank_account.id,
            )

    def test_create_account_validation(self, db_session, tenant):
        with pytest.raises(ValidationError):
            treasury.create_account(tenant_id=tenant.id, name="Vault", account_type="SAFE")
        with pytest.raises(ValidationError):
            treasury.create_account(tenant_id=tenant.id, name="Vault", opening_balance=-1)
        account = treasury.create_account(tenant_id=tenant.id, name="Vault", opening_balance="250")
        assert account.current_balance == D("250.00")
        assert account.account_type == "BANK"
