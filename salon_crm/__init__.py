"""Salon CRM online-booking reconciliation backend"""

__version__ = "1.0.0"
