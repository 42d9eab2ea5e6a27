# Overview: Pytest coverage for customer accounts receivable.

from decimal import Decimal

import pytest

from ledgerpos.errors import AccountInactive, CreditLimitExceeded, CustomerNotFound, ValidationError
from ledgerpos.models import CustomerAccount, CustomerAccountMovement
from ledgerpos.services import customer_account_service as accounts


D = Decimal


class TestBalances:

    def test_account_created_on_first_use(self, db_session, tenant, customer):
        summary = accounts.account_summary(tenant.id, customer.id)
        assert summary["balance"] == "0.00"
        assert summary["credit_limit"] == "0.00"
        assert summary["available_credit"] is None
        assert db_session.query(CustomerAccount).count() == 1

    def test_payment_raises_balance(self, db_session, tenant, customer):
        movement = accounts.register_payment(tenant_id=tenant.id, customer_id=customer.id, amount="40")
        assert movement.movement_type == "PAYMENT"
        assert movement.balance_before == D("0.00")
        assert movement.balance_after == D("40.00")
        assert movement.concept == "Account payment"

    def test_adjustment_is_signed(self, db_session, tenant, customer):
        movement = accounts.adjust(tenant_id=tenant.id, customer_id=customer.id, amount=D("-25.50"), concept="Old debt")
        assert movement.amount == D("25.50")
        assert movement.balance_after == D("-25.50")

        movement = accounts.adjust(tenant_id=tenant.id, customer_id=customer.id, amount=10, concept="Goodwill")
        assert movement.balance_before == D("-25.50")
        assert movement.balance_after == D("-15.50")

    def test_every_movement_chains_balances(self, db_session, tenant, customer):
        accounts.register_payment(tenant_id=tenant.id, customer_id=customer.id, amount=100)
        accounts.adjust(tenant_id=tenant.id, customer_id=customer.id, amount=-30, concept="Fee")
        accounts.register_payment(tenant_id=tenant.id, customer_id=customer.id, amount=5)

        movements = list(reversed(accounts.list_movements(tenant.id, customer.id)))
        assert [m.movement_type for m in movements] == ["PAYMENT", "ADJUSTMENT", "PAYMENT"]
        for previous, current in zip(movements, movements[1:]):
            assert current.balance_before == previous.balance_after
        account = accounts.get_or_create_account(tenant.id, customer.id)
        assert account.balance == movements[-1].balance_after == D("75.00")


class TestCreditLimit:

    def test_available_credit(self, db_session, tenant, customer):
        accounts.update_account(tenant_id=tenant.id, customer_id=customer.id, credit_limit=100)
        accounts.adjust(tenant_id=tenant.id, customer_id=customer.id, amount=-50, concept="Opening")

        summary = accounts.account_summary(tenant.id, customer.id)
        assert summary["available_credit"] == "50.00"

    def test_charge_within_limit(self, db_session, tenant, customer):
        accounts.update_account(tenant_id=tenant.id, customer_id=customer.id, credit_limit=100)
        movement = accounts.charge(tenant_id=tenant.id, customer_id=customer.id, amount=100, concept="Sale")
        db_session.commit()
        assert movement.balance_after == D("-100.00")

    def test_charge_over_limit(self, db_session, tenant, customer):
        accounts.update_account(tenant_id=tenant.id, customer_id=customer.id, credit_limit=100)
        with pytest.raises(CreditLimitExceeded) as exc:
            accounts.charge(tenant_id=tenant.id, customer_id=customer.id, amount="100.01", concept="Sale")
        assert exc.value.available == D("100.00")
        assert exc.value.requested == D("100.01")
        assert exc.value.to_dict()["details"] == {"available": "100.00", "requested": "100.01"}
        db_session.rollback()
        assert db_session.query(CustomerAccountMovement).count() == 0

    def test_negative_limit_rejected(self, db_session, tenant, customer):
        with pytest.raises(ValidationError):
            accounts.update_account(tenant_id=tenant.id, customer_id=customer.id, credit_limit=-1)


class TestRejections:

    def test_inactive_account_rejects_payment(self, db_session, tenant, customer):
        accounts.update_account(tenant_id=tenant.id, customer_id=customer.id, is_active=False)
        with pytest.raises(AccountInactive):
            accounts.register_payment(tenant_id=tenant.id, customer_id=customer.id, amount=10)

    @pytest.mark.parametrize("amount", [0, "-5"])
    def test_payment_must_be_positive(self, db_session, tenant, customer, amount):
        with pytest.raises(ValidationError):
            accounts.register_payment(tenant_id=tenant.id, customer_id=customer.id, amount=amount)

    def test_adjustment_needs_amount_and_concept(self, db_session, tenant, customer):
        with pytest.raises(ValidationError):
            accounts.adjust(tenant_id=tenant.id, customer_id=customer.id, amount=0, concept="Nothing")
        with pytest.raises(ValidationError):
            accounts.adjust(tenant_id=tenant.id, customer_id=customer.id, amount=5, concept="")

    def test_other_tenant_customer(self, db_session, other_tenant, customer):
        with pytest.raises(CustomerNotFound):
            accounts.account_summary(other_tenant.id, customer.id)
        with pytest.raises(CustomerNotFound):
            accounts.list_movements(other_tenant.id, customer.id)
