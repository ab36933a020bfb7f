"""
Shipwatch - background reconciliation of shipment status against carrier APIs.
"""

__version__ = "1.0.0"
