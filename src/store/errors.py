"""
Relational store exceptions.
"""

from typing import Optional


class StoreError(Exception):
    """
    Raised when a store operation fails.

    Entity sync handlers catch this per record and count it as an error;
    it never aborts a batch.
    """

    def __init__(self, message: str, table: Optional[str] = None):
        self.table = table
        super().__init__(message)
