# src/planledger/db/__init__.py
# Don't import session on package import; the engine needs a DB driver
from .base import Base  # safe to import

__all__ = ["Base"]
