from .tenancy import Company, Location
from .customers import Customer
from .auth import User, Role, UserRole, SessionToken
from .invoices import Invoice, InvoiceItem
from .cash_drawer import CashDrawerSession, CashDrawerEvent

__all__ = [
    'Company', 'Location',
    'Customer',
    'User', 'Role', 'UserRole', 'SessionToken',
    'Invoice', 'InvoiceItem',
    'CashDrawerSession', 'CashDrawerEvent',
]
