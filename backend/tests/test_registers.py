# Overview: Pytest coverage for register sessions and drawer reconciliation.

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from ledgerpos.errors import (
    InsufficientFunds,
    NoLocationConfigured,
    RegisterAlreadyOpen,
    RegisterClosed,
    TreasuryCashAccountMissing,
    ValidationError,
)
from ledgerpos.models import CashAccountMovement, CashRegisterSession, Tenant, User
from ledgerpos.services import register_service
from ledgerpos.services.sales_service import post_sale
from ledgerpos.services.sale_schemas import SaleRequest

from conftest import cart_item, cash_sale, tender


D = Decimal


def _drawer(session, transaction_type, amount, concept, category=None):
    return register_service.record_transaction(
        tenant_id=session.tenant_id,
        session_id=session.id,
        transaction_type=transaction_type,
        amount=amount,
        concept=concept,
        category=category,
    )


class TestOpen:

    def test_open_at_operator_location(self, db_session, open_session, location):
        assert open_session.status == "OPEN"
        assert open_session.location_id == location.id
        assert open_session.opening_balance == D("100.00")

    def test_one_open_session_per_location(self, db_session, tenant, user, open_session):
        with pytest.raises(RegisterAlreadyOpen) as exc:
            register_service.open_session(tenant_id=tenant.id, user=user)
        assert exc.value.details == {"session_id": open_session.id}

    def test_negative_opening_balance(self, db_session, tenant, user):
        with pytest.raises(ValidationError):
            register_service.open_session(tenant_id=tenant.id, user=user, opening_balance=-1)

    def test_no_location_configured(self, db_session):
        tenant = Tenant(name="Empty", code="EMPTY", is_active=True)
        db_session.add(tenant)
        db_session.commit()
        user = User(tenant_id=tenant.id, name="Nobody", email="nobody@empty.test", is_active=True)
        db_session.add(user)
        db_session.commit()

        with pytest.raises(NoLocationConfigured):
            register_service.open_session(tenant_id=tenant.id, user=user)

    def test_current_session(self, db_session, tenant, location, open_session):
        assert register_service.get_current_session(tenant.id, location.id).id == open_session.id
        assert register_service.get_current_session(tenant.id + 1000, None) is None

    def test_float_leaves_treasury(self, db_session, open_session, cash_account):
        movement = db_session.query(CashAccountMovement).filter_by(movement_type="TRANSFER_OUT").one()
        assert movement.cash_account_id == cash_account.id
        assert movement.amount == D("100.00")
        assert movement.balance_before == D("100.00")
        assert movement.balance_after == D("0.00")
        assert movement.register_session_id == open_session.id
        db_session.refresh(cash_account)
        assert cash_account.current_balance == D("0.00")

    def test_open_close_cycle_keeps_treasury_flat(self, db_session, open_session, cash_account):
        register_service.close_session(
            tenant_id=open_session.tenant_id, session_id=open_session.id, closing_balance="100.00"
        )
        db_session.refresh(cash_account)
        assert cash_account.current_balance == D("100.00")

    def test_float_needs_funds(self, db_session, tenant, user, cash_account):
        with pytest.raises(InsufficientFunds) as exc:
            register_service.open_session(tenant_id=tenant.id, user=user, opening_balance="50")
        assert exc.value.details == {"available": "0.00", "required": "50.00"}
        assert db_session.query(CashRegisterSession).count() == 0
        assert db_session.query(CashAccountMovement).count() == 0

    def test_float_needs_cash_account(self, db_session, tenant, user, bank_account):
        with pytest.raises(TreasuryCashAccountMissing):
            register_service.open_session(tenant_id=tenant.id, user=user, opening_balance="50")
        assert db_session.query(CashRegisterSession).count() == 0

    def test_zero_float_needs_no_treasury(self, db_session, tenant, user):
        session = register_service.open_session(tenant_id=tenant.id, user=user)
        assert session.opening_balance == D("0.00")
        assert db_session.query(CashAccountMovement).count() == 0

    def test_second_open_row_violates_unique_guard(self, db_session, tenant, user, location, open_session):
        db_session.add(CashRegisterSession(
            tenant_id=tenant.id,
            location_id=location.id,
            user_id=user.id,
            status="OPEN",
            opening_balance=D("0"),
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestClose:

    def test_reconciliation_and_treasury_transfer(self, db_session, context, stocked_product, open_session,
                                                  cash_account, bank_account):
        post_sale(context, cash_sale(stocked_product.id, quantity=2))
        post_sale(context, SaleRequest(
            items=[cart_item(stocked_product.id)],
            payments=[tender("DEBIT_CARD", "100.00")],
        ))
        _drawer(open_session, "INCOME", "50", "Change float")
        _drawer(open_session, "EXPENSE", "30", "Cleaning", category="Supplies")

        result = register_service.close_session(
            tenant_id=open_session.tenant_id,
            session_id=open_session.id,
            closing_balance="310",
            notes="Short by ten",
        )

        session = result["session"]
        assert session.status == "CLOSED"
        assert session.expected_balance == D("320.00")
        assert session.closing_balance == D("310.00")
        assert session.difference == D("-10.00")
        assert session.notes == "Short by ten"
        assert result["sales_total"] == D("200.00")
        assert result["sales_fiscal_total"] == D("300.00")
        assert result["payment_breakdown"]["DEBIT_CARD"] == D("100.00")
        assert result["incomes"] == D("50.00")
        assert result["expenses"] == D("30.00")

        movement = db_session.query(CashAccountMovement).filter_by(
            cash_account_id=cash_account.id, movement_type="TRANSFER_IN"
        ).one()
        assert movement.movement_type == "TRANSFER_IN"
        assert movement.amount == D("310.00")
        assert movement.register_session_id == open_session.id
        db_session.refresh(cash_account)
        assert cash_account.current_balance == D("310.00")

    def test_close_twice(self, db_session, open_session, cash_account):
        register_service.close_session(tenant_id=open_session.tenant_id, session_id=open_session.id, closing_balance=100)
        with pytest.raises(RegisterClosed):
            register_service.close_session(
                tenant_id=open_session.tenant_id, session_id=open_session.id, closing_balance=100
            )

    def test_zero_count_needs_no_treasury(self, db_session, open_session):
        result = register_service.close_session(
            tenant_id=open_session.tenant_id, session_id=open_session.id, closing_balance=0
        )
        assert result["session"].difference == D("-100.00")

    def test_missing_cash_account_keeps_session_open(self, db_session, open_session, cash_account, bank_account):
        cash_account.is_active = False
        db_session.commit()
        with pytest.raises(TreasuryCashAccountMissing):
            register_service.close_session(
                tenant_id=open_session.tenant_id, session_id=open_session.id, closing_balance=100
            )
        session = db_session.get(CashRegisterSession, open_session.id)
        assert session.status == "OPEN"
        assert session.closing_balance is None

    def test_transactions_need_open_session(self, db_session, open_session, cash_account):
        register_service.close_session(tenant_id=open_session.tenant_id, session_id=open_session.id, closing_balance=100)
        with pytest.raises(RegisterClosed):
            _drawer(open_session, "INCOME", "5", "Late")

    @pytest.mark.parametrize("transaction_type,amount,concept", [
        ("REFUND", "5", "Bad type"),
        ("INCOME", "0", "Zero"),
        ("EXPENSE", "5", ""),
    ])
    def test_invalid_transactions(self, db_session, open_session, transaction_type, amount, concept):
        with pytest.raises(ValidationError):
            _drawer(open_session, transaction_type, amount, concept)

    def test_new_session_after_close(self, db_session, tenant, user, open_session, cash_account):
        register_service.close_session(tenant_id=tenant.id, session_id=open_session.id, closing_balance=100)
        reopened = register_service.open_session(tenant_id=tenant.id, user=user)
        assert reopened.id != open_session.id
        assert reopened.status == "OPEN"
