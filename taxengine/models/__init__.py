# taxengine/models/__init__.py

"""
Centralizes model imports so Base.metadata knows every table.
"""

from taxengine.database import Base

from .transaction import StoredTransaction
