"""
Travel Log API — ORM Models
=============================

Importing this package registers every model with Base.metadata, which
Alembic and the test suite rely on.

    User   /api/users   owns zero or more trips
    Trip   /api/trips   owns zero or more places
    Place  /api/places
"""

from travellog.models.place import Place
from travellog.models.trip import Trip
from travellog.models.user import User

__all__ = ["Place", "Trip", "User"]
