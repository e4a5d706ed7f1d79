# API v1 Package
from bizpulse.api.v1 import auth, products, transactions, analytics

__all__ = [
    'auth',
    'products',
    'transactions',
    'analytics',
]
