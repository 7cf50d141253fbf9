"""
业务服务
"""

from panotour.services.tour_service import ImportReport, TourService

__all__ = [
    "ImportReport",
    "TourService",
]
