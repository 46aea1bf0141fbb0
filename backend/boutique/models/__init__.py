from .catalog import Owner, Product, ProductSize, Supplier
from .auth import User, SessionToken
from .customers import Client
from .registers import CashRegisterSession
from .sales import Order, OrderItem, OrderPayment, ClientPayment, IdempotencyKey
from .finance import Bill, FinancialMovement, FinancialClosure, FinancialAuditLog
from .exchanges import Exchange, ExchangeItem
from .settings import StoreSettings

__all__ = [
    'Owner', 'Product', 'ProductSize', 'Supplier',
    'User', 'SessionToken',
    'Client',
    'CashRegisterSession',
    'Order', 'OrderItem', 'OrderPayment', 'ClientPayment', 'IdempotencyKey',
    'Bill', 'FinancialMovement', 'FinancialClosure', 'FinancialAuditLog',
    'Exchange', 'ExchangeItem',
    'StoreSettings',
]
