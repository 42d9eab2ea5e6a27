from .tenancy import Tenant, Location, User
from .catalog import Product, ProductVariant
from .inventory import Stock, StockMovement
from .customers import Customer, CustomerAccount, CustomerAccountMovement
from .treasury import CashAccount, CashAccountMovement, PaymentMethodAccount
from .registers import CashRegisterSession, RegisterTransaction
from .sales import Sale, SaleItem, Payment
from .documents import DocumentSequence

__all__ = [
    'Tenant', 'Location', 'User',
    'Product', 'ProductVariant',
    'Stock', 'StockMovement',
    'Customer', 'CustomerAccount', 'CustomerAccountMovement',
    'CashAccount', 'CashAccountMovement', 'PaymentMethodAccount',
    'CashRegisterSession', 'RegisterTransaction',
    'Sale', 'SaleItem', 'Payment',
    'DocumentSequence',
]
