# Database models
from fietsroute.models.base import Base
from fietsroute.models.route_record import BikeRouteRecord

__all__ = ["Base", "BikeRouteRecord"]
