"""
Tour 仓储
"""

from panotour.repository.base import TourFilter, TourRepository
from panotour.repository.memory import InMemoryTourRepository
from panotour.repository.sql import SqlAlchemyTourRepository

__all__ = [
    "InMemoryTourRepository",
    "SqlAlchemyTourRepository",
    "TourFilter",
    "TourRepository",
]
