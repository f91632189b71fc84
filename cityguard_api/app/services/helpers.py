"""Small helpers shared by the service classes."""

import math
from typing import Optional

from ..core.errors import ValidationFailed
from ..schemas.blood import normalise_blood_type


def percent(part: int, whole: int) -> int:
    """``part / whole`` as a whole percentage, halves rounded up."""
    if not whole:
        return 0
    return math.floor(part * 100 / whole + 0.5)


def blood_type_filter(value: Optional[str]) -> Optional[str]:
    """Normalise a blood type received as a query parameter."""
    try:
        return normalise_blood_type(value)
    except ValueError as exc:
        raise ValidationFailed(str(exc), {"bloodType": str(exc)}) from exc
