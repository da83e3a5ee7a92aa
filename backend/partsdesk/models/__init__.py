from .organization import Company, Store, Retailer
from .auth import User, SessionToken
from .orders import Part, Order, OrderItem, OrderStatusHistory
from .security import SecurityEvent

__all__ = [
    'Company', 'Store', 'Retailer',
    'User', 'SessionToken',
    'Part', 'Order', 'OrderItem', 'OrderStatusHistory',
    'SecurityEvent',
]
