from .auth import User, LoginToken
from .catalog import InventoryItem, ServiceDefinition
from .sessions import BusinessSession, DayEndRecord
from .sales import Sale
from .customers import Customer, Vehicle
from .purchasing import Supplier, GoodsReceivedNote
from .expenses import Expense
from .settings import Setting, JournalEntry

__all__ = [
    'User', 'LoginToken',
    'InventoryItem', 'ServiceDefinition',
    'BusinessSession', 'DayEndRecord',
    'Sale',
    'Customer', 'Vehicle',
    'Supplier', 'GoodsReceivedNote',
    'Expense',
    'Setting', 'JournalEntry',
]
