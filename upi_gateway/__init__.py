"""
UPI payment router - bank adapter routing, payment lifecycle and reconciliation
"""

__version__ = "1.0.0"
