"""
Pydantic schemas for cleanup and admin statistics.
"""
from pydantic import BaseModel
from typing import List


class SweepResult(BaseModel):
    """Counts from one expiry sweep."""
    expired: int
    completed: int


class CleanupStats(BaseModel):
    """Number of requests per status."""
    active: int = 0
    completed: int = 0
    cancelled: int = 0
    expired: int = 0


class ReconcileResult(BaseModel):
    """Requests whose occupancy counter was repaired."""
    repaired: List[str] = []
