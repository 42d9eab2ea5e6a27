# Overview: Error taxonomy shared by services and routes.

"""
Typed errors for the sale posting core and the ledgers around it.

Every error carries a stable `code` and a `details` dict so the HTTP layer
can map it without parsing messages. Routes render `to_dict()` with the
error's `status_code`.
"""

from __future__ import annotations

from decimal import Decimal


class LedgerError(Exception):
    """Base class for all business-rule and validation failures."""
    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(LedgerError):
    """Input shape rejected before any transaction is opened."""
    code = "VALIDATION_ERROR"


class Unauthorized(LedgerError):
    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: dict | None = None):
        super().__init__(message, details)


class NotFound(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


# =============================================================================
# SALE POSTING
# =============================================================================

class SaleError(LedgerError):
    """Raised for sale posting failures. The whole sale is rolled back."""
    code = "SALE_ERROR"


class NoOpenRegister(SaleError):
    code = "NO_OPEN_REGISTER"

    def __init__(self, message: str = "No open cash register. Open a register first."):
        super().__init__(message)


class NoLocationConfigured(SaleError):
    code = "NO_LOCATION_CONFIGURED"

    def __init__(self, message: str = "No location configured. Create a location first."):
        super().__init__(message)


class NoPaymentMethod(SaleError):
    code = "NO_PAYMENT_METHOD"

    def __init__(self, message: str = "Provide payments or a paymentMethod"):
        super().__init__(message, {"field": "payments"})


class CustomerRequired(SaleError):
    code = "CUSTOMER_REQUIRED"

    def __init__(self, message: str = "A customer is required for ACCOUNT payments"):
        super().__init__(message, {"field": "customer_id"})


class CustomerNotFound(SaleError):
    code = "CUSTOMER_NOT_FOUND"
    status_code = 404

    def __init__(self, customer_id):
        super().__init__("Customer not found", {"customer_id": customer_id})


class ProductNotFound(SaleError):
    code = "PRODUCT_NOT_FOUND"
    status_code = 404

    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found", {"product_id": product_id})


class VariantNotFound(SaleError):
    code = "VARIANT_NOT_FOUND"
    status_code = 404

    def __init__(self, variant_id):
        super().__init__(f"Variant {variant_id} not found", {"variant_id": variant_id})


class InsufficientStock(SaleError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, item: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {item}",
            {"item": item, "requested": requested, "available": available},
        )
        self.item = item
        self.requested = requested
        self.available = available


class PaymentsMismatch(SaleError):
    code = "PAYMENTS_MISMATCH"

    def __init__(self, payments_total: Decimal, sale_total: Decimal):
        super().__init__(
            f"Payments total ({payments_total}) does not match sale total ({sale_total})",
            {"payments_total": str(payments_total), "sale_total": str(sale_total)},
        )
        self.payments_total = payments_total
        self.sale_total = sale_total


class AccountInactive(SaleError):
    code = "ACCOUNT_INACTIVE"

    def __init__(self, message: str = "Customer account is inactive"):
        super().__init__(message)


class CreditLimitExceeded(SaleError):
    code = "CREDIT_LIMIT_EXCEEDED"

    def __init__(self, available: Decimal, requested: Decimal):
        super().__init__(
            f"Credit limit exceeded. Available credit: {available}",
            {"available": str(available), "requested": str(requested)},
        )
        self.available = available
        self.requested = requested


# =============================================================================
# TREASURY / REGISTERS / NUMBERING
# =============================================================================

class AccountError(LedgerError):
    """Raised for treasury account operation errors."""
    code = "ACCOUNT_ERROR"


class InsufficientFunds(AccountError):
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, available: Decimal, required: Decimal):
        super().__init__(
            "Insufficient balance in account",
            {"available": str(available), "required": str(required)},
        )


class SameAccountTransfer(AccountError):
    code = "SAME_ACCOUNT_TRANSFER"

    def __init__(self):
        super().__init__("Source and destination accounts must be different")


class RegisterError(LedgerError):
    """Raised for cash register session errors."""
    code = "REGISTER_ERROR"


class RegisterAlreadyOpen(RegisterError):
    code = "REGISTER_ALREADY_OPEN"

    def __init__(self, session_id: int):
        super().__init__("A register session is already open at this location", {"session_id": session_id})


class RegisterClosed(RegisterError):
    code = "REGISTER_CLOSED"

    def __init__(self, session_id: int):
        super().__init__("Register session is already closed", {"session_id": session_id})


class TreasuryCashAccountMissing(RegisterError):
    code = "TREASURY_CASH_ACCOUNT_MISSING"

    def __init__(self):
        super().__init__("No active CASH treasury account for the register cash")


class DocumentSequenceError(LedgerError):
    """Raised when document sequence operations fail."""
    code = "DOCUMENT_SEQUENCE_ERROR"
