from .accounts import Account, SyncToken
from .catalog import Product, Service, Supplier
from .customers import Customer, CustomerLedgerEntry
from .promotions import DiscountRule, Coupon
from .settings import StoreSetting
from .inventory import InventoryBatch, StockInRecord, StockInItem, StockLedgerEntry
from .sales import Order, OrderItem, Receipt, Refund
from .sync import Deletion

__all__ = [
    'Account', 'SyncToken',
    'Product', 'Service', 'Supplier',
    'Customer', 'CustomerLedgerEntry',
    'DiscountRule', 'Coupon',
    'StoreSetting',
    'InventoryBatch', 'StockInRecord', 'StockInItem', 'StockLedgerEntry',
    'Order', 'OrderItem', 'Receipt', 'Refund',
    'Deletion',
]
