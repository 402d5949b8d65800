"""SQLAlchemy Base class and model registry."""
from hoarding_rental.models.base import Base


def import_models():
    """Import all models to register them with SQLAlchemy."""
    from hoarding_rental.models import booking_token, hoarding, rent_record, staff_member  # noqa: F401


import_models()

__all__ = ["Base", "import_models"]
