from .catalog_service import CatalogService
from .settings_service import SettingsService
from .checkout_service import CheckoutService
from .caisse_service import CaisseService
from .reporting_service import ReportingService

__all__ = [
    "CatalogService",
    "SettingsService",
    "CheckoutService",
    "CaisseService",
    "ReportingService",
]
