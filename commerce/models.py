"""
Commerce Application Models Registry

This module serves as the central models registry for the commerce application.
It imports and exposes all models from the logical submodules so they are
registered with Django's ORM under the single ``commerce`` app label.

Architecture:
- catalog/: Courses and products with capacity/stock counters
- orders/: Enrollments and shop orders with line items
- prepaid_cards/: Single-use bearer cards
- payments/: Payment attempts and their line items

Author: Experience Tech Development Team
Version: 1.0.0
"""

# Catalog (enrollable items)
from .catalog.models import *

# Enrollments and orders
from .orders.models import *

# Prepaid cards
from .prepaid_cards.models import *

# Payments
from .payments.models import *
