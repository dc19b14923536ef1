from .customers import Customer
from .inventory import Product, StockMovement
from .orders import Order, OrderLine, PaidBalance, DebtBalance
from .payments import Payment
from .auth import User, SessionToken

__all__ = [
    'Customer',
    'Product', 'StockMovement',
    'Order', 'OrderLine', 'PaidBalance', 'DebtBalance',
    'Payment',
    'User', 'SessionToken',
]
