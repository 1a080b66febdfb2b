"""SQLAlchemy ORM models.

Models represent database tables:
- requests: Posted needs awaiting responses
- responses: Offers against requests (one per responder per request)
- usage_monthly: Per-user monthly response counters
- urgent_boost_transactions: Pending/paid urgent boost payments
- business_profiles, business_types, country_business_types: Read-only
  snapshot of the verification/subscription subsystem
- country_module_configs: Per-country enabled request modules
"""

from app.models.request import Request
from app.models.response import Response
from app.models.usage import UsageCounter
from app.models.urgent_boost import UrgentBoostTransaction
from app.models.business import BusinessProfile, BusinessType, CountryBusinessType
from app.models.module_config import CountryModuleConfig

__all__ = [
    "Request",
    "Response",
    "UsageCounter",
    "UrgentBoostTransaction",
    "BusinessProfile",
    "BusinessType",
    "CountryBusinessType",
    "CountryModuleConfig",
]
