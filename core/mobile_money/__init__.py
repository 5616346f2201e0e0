"""
Mobile Money Integration Package
================================

This package is the integration boundary between the commerce app and the
mobile money operators available in Chad (Airtel Money, Moov Money).

Current Scope
-------------
- ``providers.py``: one adapter class per operator exposing
  ``create_payment``, ``check_status``, ``validate_webhook`` and
  ``parse_webhook``, plus ``get_provider`` to build an adapter from settings.
- ``exceptions.py``: provider-side exception hierarchy.

Simulation
----------
When an operator has no API key/secret configured the adapter runs in
simulation mode: references are generated locally and status checks always
report ``pending``. Callers must therefore never assume a synchronous
confirmation.

Structure
---------
- __init__.py  (this file)
- apps.py      → App configuration (``MobileMoneyConfig``)
- exceptions.py
- providers.py
- tests.py

Author: Experience Tech Development Team
Version: 1.0.0
"""
