# Services Package
from bizpulse.services.user_service import UserService
from bizpulse.services.business_service import BusinessService
from bizpulse.services.inventory_service import ProductService, InventoryService
from bizpulse.services.transaction_service import TransactionService
from bizpulse.services.analytics_service import AnalyticsService
from bizpulse.services.logo_storage import LocalLogoStorage

__all__ = [
    'UserService',
    'BusinessService',
    'ProductService',
    'InventoryService',
    'TransactionService',
    'AnalyticsService',
    'LocalLogoStorage',
]
