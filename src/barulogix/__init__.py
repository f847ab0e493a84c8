"""BaruLogix - package operations for small delivery warehouses.

Tracks Shein/Temu and Dropi (cash-on-delivery) packages assigned to drivers,
reconciles deliveries and returns in bulk, and notifies drivers about
overdue packages.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
