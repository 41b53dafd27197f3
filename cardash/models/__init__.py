"""Database models — re-exports all models.

Import from here:  from cardash.models import User, Deal, ...
Or from submodules: from cardash.models.auth import User
"""

from .base import Base  # noqa: F401

# Auth, roles & permissions
from .auth import (  # noqa: F401
    OtpVerification,
    Permission,
    Role,
    RolePermission,
    User,
    UserPermission,
    UserRole,
)

# Inventory
from .inventory import Car, Customer, Provider  # noqa: F401

# Deals
from .deals import Deal, DealSignature  # noqa: F401

# Billing & balance ledger
from .billing import Bill, BillPayment, CustomerTransaction  # noqa: F401

# Activity log
from .activity import ActivityLog  # noqa: F401

# Company settings
from .config import CompanySettings  # noqa: F401
