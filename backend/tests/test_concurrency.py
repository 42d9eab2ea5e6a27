# Overview: Pytest coverage for the ledger write retry helper.

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ledgerpos.errors import PaymentsMismatch
from ledgerpos.services.concurrency import apply_transaction_timeout, run_with_retry


def _flaky(failures, exc_factory):
    calls = {"count": 0}

    def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise exc_factory()
        return "posted"

    return operation, calls


def _locked():
    return OperationalError("UPDATE document_sequences", {}, Exception("database is locked"))


class TestRunWithRetry:

    def test_retries_lock_errors(self, db_session):
        operation, calls = _flaky(2, _locked)
        assert run_with_retry(operation, attempts=3, backoff_base=0) == "posted"
        assert calls["count"] == 3

    def test_retries_stale_versions(self, db_session):
        operation, calls = _flaky(1, lambda: StaleDataError("version mismatch"))
        assert run_with_retry(operation, backoff_base=0) == "posted"
        assert calls["count"] == 2

    def test_gives_up_after_attempts(self, db_session):
        operation, calls = _flaky(5, _locked)
        with pytest.raises(OperationalError):
            run_with_retry(operation, attempts=2, backoff_base=0)
        assert calls["count"] == 2

    def test_business_errors_are_not_retried(self, db_session):
        operation, calls = _flaky(1, lambda: PaymentsMismatch(1, 2))
        with pytest.raises(PaymentsMismatch):
            run_with_retry(operation, backoff_base=0)
        assert calls["count"] == 1


class TestTransactionTimeout:

    def test_noop_outside_postgresql(self, db_session):
        apply_transaction_timeout(5)
        apply_transaction_timeout(None)
