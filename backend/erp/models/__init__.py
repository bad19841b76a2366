from .auth import User
from .business import Business, CompanySettings
from .customers import Customer
from .products import Product
from .transactions import Sales, SalesItem, Purchase, PurchaseItem, Payment
from .security import SecurityEvent, OTP
from .communications import Notification, ActivityLog, Note
from .accounting import Account

__all__ = [
    'User',
    'Business', 'CompanySettings',
    'Customer',
    'Product',
    'Sales', 'SalesItem', 'Purchase', 'PurchaseItem', 'Payment',
    'SecurityEvent', 'OTP',
    'Notification', 'ActivityLog', 'Note',
    'Account',
]
