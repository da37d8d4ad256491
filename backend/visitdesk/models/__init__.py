from .visits import Visit, VisitSeat
from .sales import Payment, Sale, SaleLine
from .catalog import Product
from .settings import AppSetting

__all__ = [
    'Visit', 'VisitSeat',
    'Payment', 'Sale', 'SaleLine',
    'Product',
    'AppSetting',
]
