from .companies import Company, CompanyCashbackConfig
from .identities import Identity, IdentityKind, AffiliateBalance
from .cashiers import Cashier
from .sessions import CompanySession, CashierSession, AffiliateSession
from .purchases import CustomerCoupon, Purchase
from .commissions import CommissionOutbox, CommissionCredit, OutboxStatus
from .security import SecurityEvent

__all__ = [
    'Company', 'CompanyCashbackConfig',
    'Identity', 'IdentityKind', 'AffiliateBalance',
    'Cashier',
    'CompanySession', 'CashierSession', 'AffiliateSession',
    'CustomerCoupon', 'Purchase',
    'CommissionOutbox', 'CommissionCredit', 'OutboxStatus',
    'SecurityEvent',
]
