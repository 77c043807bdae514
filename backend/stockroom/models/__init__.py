from .inventory import Product, SaleRecord, RestockRecord
from .auth import User, SessionToken

__all__ = [
    'Product', 'SaleRecord', 'RestockRecord',
    'User', 'SessionToken',
]
