from .shifts import Shift
from .transactions import Transaction
from .catalog import CatalogItem
from .stats import DailyStat

__all__ = [
    'Shift',
    'Transaction',
    'CatalogItem',
    'DailyStat',
]
