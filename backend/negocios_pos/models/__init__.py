from .tenancy import Tenant, InvoiceSequence
from .inventory import Category, Product, StockMovement
from .sales import Sale, SaleLine
from .auth import User, SessionToken
from .security import SecurityEvent

__all__ = [
    'Tenant', 'InvoiceSequence',
    'Category', 'Product', 'StockMovement',
    'Sale', 'SaleLine',
    'User', 'SessionToken',
    'SecurityEvent',
]
