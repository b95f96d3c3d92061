"""
AuditHub - smart-contract audit marketplace API.
"""

__version__ = "1.0.0"
