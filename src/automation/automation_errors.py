# automation_errors.py
"""
Eccezioni del sistema Automation.

Tutti gli errori sono sincroni e locali: vengono sollevati prima di
qualsiasi scrittura sul buffer del chiamante.

Hierarchy:
- AutomationError (base)
  - InvalidBounds: x2 < x1, lunghezza negativa o nulla dove vietata
  - InvalidParameter: parametro di forma non valido (es. yc fuori range)
  - IndexOutOfBounds: indice strutturale fuori range
  - DegenerateScale: scala con fattore 0
  - UndefinedTimeIntegral: integrale di 1/f con ymin <= 0
"""


class AutomationError(Exception):
    """Base class for every error raised by the automation engine."""


class InvalidBounds(AutomationError, ValueError):
    """Segment extent is invalid (x2 < x1, negative or forbidden zero length)."""


class InvalidParameter(AutomationError, ValueError):
    """A shape parameter or a builder entry is not acceptable."""


class IndexOutOfBounds(AutomationError, IndexError):
    """Structural index outside the automation's segment list."""


class DegenerateScale(AutomationError, ValueError):
    """Scaling by a zero factor collapses the x axis."""


class UndefinedTimeIntegral(AutomationError, ArithmeticError):
    """The reciprocal integral does not exist because ymin() <= 0."""
