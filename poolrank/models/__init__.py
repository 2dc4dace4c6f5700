from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .contest import Contest  # noqa: F401
from .discount import Discount  # noqa: F401
from .draw import Draw  # noqa: F401
from .participation import Participation, Payment  # noqa: F401

__all__ = [
    "Base",
    "Contest",
    "Discount",
    "Draw",
    "Participation",
    "Payment",
]
