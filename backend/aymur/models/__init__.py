from .tenancy import Shop, ShopSetting, SaleNumberSequence
from .inventory import InventoryItem
from .customers import Customer, CustomerTransaction, ImmutableLedgerError
from .sales import Sale, SaleItem, SalePayment

__all__ = [
    'Shop', 'ShopSetting', 'SaleNumberSequence',
    'InventoryItem',
    'Customer', 'CustomerTransaction', 'ImmutableLedgerError',
    'Sale', 'SaleItem', 'SalePayment',
]
