# automation_segment.py
"""
Segment classes for the Automation system.

Design Pattern: Template Method
- AutomationSegment (ABC): buffer handling, bounds, validation, mutation
- ConstantAutomationSegment: holds c
- LinearAutomationSegment: straight line (x1, y1) -> (x2, y2)
- ExponentialAutomationSegment: exponential through (x1, y1), (mid, yc), (x2, y2)
- QuadraticAutomationSegment: parabola through (x1, y1), (mid, yc), (x2, y2)

Each Segment:
- Owns x1 and a length; x2 is always derived as x1 + length
- Implements closed-form kernels (_values, _derivatives, _integrals,
  _time_integrals) over numpy arrays
- Writes batched results IN PLACE into the caller's buffer

Integrals are measured from x1: integral_at(x) = ∫[x1, x] f,
time_integral_at(x) = ∫[x1, x] 1/f.
"""

import copy
import math
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from automation.automation_errors import (
    DegenerateScale,
    InvalidBounds,
    InvalidParameter,
    UndefinedTimeIntegral,
)
from shared.logger import log_fallback, log_time_integral_rejected


# =============================================================================
# COSTANTI
# =============================================================================

LINEAR_TIME_INTEGRAL_EPS = 1e-9   # slope sotto cui 1/f si integra come costante
EXPONENTIAL_EPS = 1e-8            # |p - 0.5| sotto cui l'esponenziale è una retta
QUADRATIC_EPS = 1e-8              # coefficienti a, b trascurabili nel time integral


# =============================================================================
# BUFFER HELPERS
# =============================================================================

def as_query_array(buffer) -> np.ndarray:
    """
    Return a float ndarray over the caller's query positions.

    numpy float arrays are returned as-is (results are written straight into
    them); any other sequence is copied and must be written back with
    write_back().
    """
    if isinstance(buffer, np.ndarray):
        if not np.issubdtype(buffer.dtype, np.floating):
            raise InvalidParameter(
                f"Query buffer must hold floats to be overwritten in place, "
                f"got dtype {buffer.dtype}"
            )
        return buffer
    try:
        return np.asarray(buffer, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidParameter(f"Query buffer is not numeric: {e}") from e


def write_back(buffer, array: np.ndarray):
    """Copy results into a non-ndarray buffer (no-op for ndarrays)."""
    if array is not buffer:
        buffer[:] = array.tolist()
    return buffer


def _check_finite(name: str, value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidParameter(f"{name} must be finite, got {value}")
    return value


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class AutomationSegment(ABC):
    """
    Abstract base class for automation segments.

    A segment is one analytic piece of an Automation, valid on [x1, x2].
    The stored length is authoritative: when an Automation re-lays out its
    segments it only rewrites x1, so every segment keeps its own extent.

    Template Method Pattern:
    - Subclasses implement the array kernels and ymin()/ymax()
    - Buffer handling, scalar forms and the time-integral precondition here
    """

    # Shapes whose derivative divides by (x2 - x1) forbid zero length
    _disallow_zero_length = True

    def __init__(
        self,
        x1: float = 0.0,
        y1: float = 0.0,
        x2: Optional[float] = None,
        y2: Optional[float] = None,
        length: Optional[float] = None
    ):
        """
        Initialize segment.

        Args:
            x1: start position
            y1: value at x1
            x2: end position (default x1 + 1)
            y2: value at x2 (default y1 + 1)
            length: extent, alternative to x2

        Raises:
            InvalidBounds: x2 < x1, negative length, zero length where forbidden
            InvalidParameter: non-numeric / non-finite inputs, x2 and length both given
        """
        x1 = _check_finite('x1', x1)
        y1 = _check_finite('y1', y1)

        if x2 is not None and length is not None:
            raise InvalidParameter("Pass either x2 or length, not both")
        if length is not None:
            length = _check_finite('length', length)
        elif x2 is not None:
            x2 = _check_finite('x2', x2)
            if x2 < x1:
                raise InvalidBounds(f"x2 ({x2}) must be greater than or equal to x1 ({x1})")
            length = x2 - x1
        else:
            length = 1.0

        self.x1 = x1
        self.length = length
        self.y1 = y1
        self.y2 = y1 + 1.0 if y2 is None else _check_finite('y2', y2)

    # =========================================================================
    # EXTENT
    # =========================================================================

    @property
    def length(self) -> float:
        return self._length

    @length.setter
    def length(self, value: float):
        if value < 0:
            raise InvalidBounds(f"Segment length can't be negative, got {value}")
        if value == 0 and self._disallow_zero_length:
            raise InvalidBounds(f"{type(self).__name__} can't have a zero length")
        self._length = float(value)

    @property
    def x2(self) -> float:
        return self.x1 + self._length

    @x2.setter
    def x2(self, value: float):
        self.length = value - self.x1

    def delta_y(self) -> float:
        """How much the segment changes from start to end."""
        return self.y2 - self.y1

    # =========================================================================
    # BOUNDS
    # =========================================================================

    @abstractmethod
    def ymin(self) -> float:
        """Minimum value over [x1, x2]."""

    @abstractmethod
    def ymax(self) -> float:
        """Maximum value over [x1, x2]."""

    # =========================================================================
    # KERNELS (new arrays, no side effects)
    # =========================================================================

    @abstractmethod
    def _values(self, x: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def _derivatives(self, x: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def _integrals(self, x: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def _time_integrals(self, x: np.ndarray) -> np.ndarray:
        pass

    # =========================================================================
    # BATCHED FORMS (in place)
    # =========================================================================

    def values(self, buffer):
        """
        Overwrite every query position in buffer with the segment value.

        Args:
            buffer: numpy float array (or list) of positions

        Returns:
            The same buffer, now holding values
        """
        array = as_query_array(buffer)
        array[...] = self._values(array)
        return write_back(buffer, array)

    def derivatives(self, buffer):
        array = as_query_array(buffer)
        array[...] = self._derivatives(array)
        return write_back(buffer, array)

    def integrals(self, buffer):
        array = as_query_array(buffer)
        array[...] = self._integrals(array)
        return write_back(buffer, array)

    def time_integrals(self, buffer):
        """
        Overwrite buffer with ∫[x1, x] 1/f.

        Raises:
            UndefinedTimeIntegral: if ymin() <= 0 (checked before any write)
        """
        self._time_integral_check()
        array = as_query_array(buffer)
        array[...] = self._time_integrals(array)
        return write_back(buffer, array)

    # =========================================================================
    # SCALAR FORMS (one-element buffer through the batched form)
    # =========================================================================

    def value_at(self, x: float) -> float:
        return float(self.values(np.array([x], dtype=np.float64))[0])

    def derivative_at(self, x: float) -> float:
        return float(self.derivatives(np.array([x], dtype=np.float64))[0])

    def integral_at(self, x: float) -> float:
        return float(self.integrals(np.array([x], dtype=np.float64))[0])

    def time_integral_at(self, x: float) -> float:
        return float(self.time_integrals(np.array([x], dtype=np.float64))[0])

    def _time_integral_check(self):
        ymin = self.ymin()
        if ymin <= 0:
            log_time_integral_rejected(repr(self), ymin)
            raise UndefinedTimeIntegral(
                f"Time integral of {type(self).__name__} does not exist, "
                f"because the y minimum ({ymin}) is not positive."
            )

    # =========================================================================
    # GEOMETRIC MUTATION
    # =========================================================================

    def translate_x(self, dx: float) -> 'AutomationSegment':
        self.x1 += dx
        return self

    def translate_y(self, dy: float) -> 'AutomationSegment':
        self.y1 += dy
        self.y2 += dy
        return self

    def scale_x(self, factor: float) -> 'AutomationSegment':
        """
        Scale the x extent about x = 0.

        A negative factor mirrors the segment: the new start is the old end
        times factor, and the y direction is reversed so x stays increasing.

        Raises:
            DegenerateScale: if factor == 0
        """
        if factor == 0:
            raise DegenerateScale("Can't scale a segment by a factor of 0")

        new_x1 = self.x1 * factor if factor > 0 else self.x2 * factor
        self.length = self._length * abs(factor)
        self.x1 = new_x1

        if factor < 0:
            self._flip()

        return self

    def scale_y(self, factor: float) -> 'AutomationSegment':
        self.y1 *= factor
        self.y2 *= factor
        return self

    def _flip(self):
        self.y1, self.y2 = self.y2, self.y1

    def clone(self) -> 'AutomationSegment':
        return copy.copy(self)

    def __repr__(self):
        return (
            f"{self.__class__.__name__}("
            f"x1={self.x1:.6g}, x2={self.x2:.6g}, "
            f"y1={self.y1:.6g}, y2={self.y2:.6g})"
        )


# =============================================================================
# CONCRETE SEGMENTS
# =============================================================================

class ConstantAutomationSegment(AutomationSegment):
    """
    Holds a constant value c between x1 and x2.

    The only shape allowed to have zero length.
    """

    _disallow_zero_length = False

    def __init__(
        self,
        x1: float = 0.0,
        x2: Optional[float] = None,
        c: float = 0.0,
        length: Optional[float] = None
    ):
        c = _check_finite('c', c)
        super().__init__(x1=x1, y1=c, x2=x2, y2=c, length=length)

    # y2 is a view over y1: a constant has a single value
    @property
    def y2(self) -> float:
        return self.y1

    @y2.setter
    def y2(self, value: float):
        self.y1 = value

    @property
    def c(self) -> float:
        return self.y1

    @c.setter
    def c(self, value: float):
        self.y1 = _check_finite('c', value)

    def ymin(self) -> float:
        return self.c

    def ymax(self) -> float:
        return self.c

    def _values(self, x):
        return np.full_like(x, self.c)

    def _derivatives(self, x):
        return np.zeros_like(x)

    def _integrals(self, x):
        # Rettangolo di lati c e (x - x1)
        return self.c * (x - self.x1)

    def _time_integrals(self, x):
        return (x - self.x1) / self.c

    def translate_y(self, dy: float) -> 'ConstantAutomationSegment':
        self.c += dy
        return self

    def scale_y(self, factor: float) -> 'ConstantAutomationSegment':
        self.c *= factor
        return self

    def _flip(self):
        pass

    def __repr__(self):
        return (
            f"{self.__class__.__name__}("
            f"x1={self.x1:.6g}, x2={self.x2:.6g}, c={self.c:.6g})"
        )


class LinearAutomationSegment(AutomationSegment):
    """
    Straight line between (x1, y1) and (x2, y2).

    Special case of both the exponential and the quadratic shapes, without
    their corner cases.
    """

    def slope(self) -> float:
        return (self.y2 - self.y1) / self._length

    def ymin(self) -> float:
        return min(self.y1, self.y2)

    def ymax(self) -> float:
        return max(self.y1, self.y2)

    def _values(self, x):
        return (x - self.x1) * self.slope() + self.y1

    def _derivatives(self, x):
        return np.full_like(x, self.slope())

    def _integrals(self, x):
        xd = x - self.x1
        return self.y1 * xd + self.slope() * xd * xd / 2

    def _time_integrals(self, x):
        return _linear_time_integrals(x, self.x1, self.y1, self.slope(), type(self).__name__)


class ExponentialAutomationSegment(AutomationSegment):
    """
    Exponential interpolation through (x1, y1), ((x1 + x2) / 2, yc), (x2, y2).

    Exponentials are monotonic, so yc must lie strictly between y1 and y2.
    With yc = sqrt(y1 * y2) (geometric mean) a frequency sweep is linear in
    pitch.

    Closed form, with p = (yc - y1) / (y2 - y1):
        base = (1/p - 1) ** (2 / (x2 - x1))
        c1 = p² / (1 - 2p) * (y2 - y1)
        f(x) = c1 * (base ** (x - x1) - 1) + y1

    When p is (nearly) 0.5 the curve is a line and 1/(1 - 2p) blows up:
    the linear formulas are used instead.
    """

    def __init__(
        self,
        x1: float = 0.0,
        y1: float = 0.0,
        x2: Optional[float] = None,
        y2: Optional[float] = None,
        yc: Optional[float] = None,
        length: Optional[float] = None
    ):
        super().__init__(x1=x1, y1=y1, x2=x2, y2=y2, length=length)
        self.yc = (self.y1 + self.y2) / 2 if yc is None else yc

    @property
    def yc(self) -> float:
        return self._yc

    @yc.setter
    def yc(self, value: float):
        value = _check_finite('yc', value)
        self._check_control_point(self.y1, self.y2, value)
        self._yc = value

    @staticmethod
    def _check_control_point(y1: float, y2: float, yc: float):
        if not (min(y1, y2) < yc < max(y1, y2)):
            raise InvalidParameter(
                f"yc ({yc}) out of bounds: must lie strictly between "
                f"y1 ({y1}) and y2 ({y2})"
            )

    def ymin(self) -> float:
        return min(self.y1, self.y2)

    def ymax(self) -> float:
        return max(self.y1, self.y2)

    def _ratio(self) -> float:
        return (self.yc - self.y1) / (self.y2 - self.y1)

    def _is_linear(self, p: float) -> bool:
        if p == 0 or abs(p - 0.5) < EXPONENTIAL_EPS:
            log_fallback(type(self).__name__, 'exponential as linear', p=p)
            return True
        return False

    def _coefficients(self, p: float):
        """Return (c1, k) with f(x) = c1 * (exp(k * (x - x1)) - 1) + y1."""
        c1 = p * p / (1 - 2 * p) * (self.y2 - self.y1)
        k = 2 * math.log(1 / p - 1) / self._length
        return c1, k

    def _values(self, x):
        p = self._ratio()
        if self._is_linear(p):
            return (x - self.x1) * (self.delta_y() / self._length) + self.y1

        c1, k = self._coefficients(p)
        return c1 * np.expm1(k * (x - self.x1)) + self.y1

    def _derivatives(self, x):
        p = self._ratio()
        if self._is_linear(p):
            return np.full_like(x, self.delta_y() / self._length)

        c1, k = self._coefficients(p)
        return c1 * k * np.exp(k * (x - self.x1))

    def _integrals(self, x):
        p = self._ratio()
        xd = x - self.x1
        if self._is_linear(p):
            return xd * (self.y1 + self.delta_y() / self._length / 2 * xd)

        c1, k = self._coefficients(p)
        return self.y1 * xd + c1 * (np.expm1(k * xd) / k - xd)

    def _time_integrals(self, x):
        p = self._ratio()
        if self._is_linear(p):
            return _linear_time_integrals(
                x, self.x1, self.y1, self.delta_y() / self._length,
                type(self).__name__, eps=EXPONENTIAL_EPS
            )

        c1, k = self._coefficients(p)
        xd = x - self.x1
        offset = self.y1 - c1   # f(x) = c1 * exp(k * xd) + offset

        if abs(offset) < EXPONENTIAL_EPS:
            # Esponenziale puro: ∫ e^(-k t) / c1
            return -np.expm1(-k * xd) / (c1 * k)

        f = c1 * np.expm1(k * xd) + self.y1
        return (xd - np.log(f / self.y1) / k) / offset

    def translate_y(self, dy: float) -> 'ExponentialAutomationSegment':
        self.y1 += dy
        self.y2 += dy
        self._yc += dy
        return self

    def scale_y(self, factor: float) -> 'ExponentialAutomationSegment':
        y1, y2, yc = self.y1 * factor, self.y2 * factor, self._yc * factor
        self._check_control_point(y1, y2, yc)
        self.y1, self.y2, self._yc = y1, y2, yc
        return self

    def __repr__(self):
        return (
            f"{self.__class__.__name__}("
            f"x1={self.x1:.6g}, x2={self.x2:.6g}, "
            f"y1={self.y1:.6g}, y2={self.y2:.6g}, yc={self.yc:.6g})"
        )


class QuadraticAutomationSegment(AutomationSegment):
    """
    Quadratic interpolation through (x1, y1), ((x1 + x2) / 2, yc), (x2, y2).

    Unlike the exponential shape, yc may lie outside [y1, y2] and the curve
    may overshoot both endpoints. To keep the whole segment between y1 and
    y2, restrict yc to [(3*y1 + y2) / 4, (y1 + 3*y2) / 4].

    Everything is computed in the local coordinate t = x - x1, so results do
    not depend on where the segment sits on the x axis:
        f(t)  = a * t² + b * t + y1
        a = 2 * (y1 + y2 - 2*yc) / L²,   b = (4*yc - 3*y1 - y2) / L
    """

    def __init__(
        self,
        x1: float = 0.0,
        y1: float = 0.0,
        x2: Optional[float] = None,
        y2: Optional[float] = None,
        yc: Optional[float] = None,
        length: Optional[float] = None
    ):
        super().__init__(x1=x1, y1=y1, x2=x2, y2=y2, length=length)
        self.yc = (self.y1 + self.y2) / 2 if yc is None else _check_finite('yc', yc)

    def _d(self) -> float:
        # Segno della curvatura (d > 0: convessa)
        return 4 * self.y1 + 4 * self.y2 - 8 * self.yc

    def _local_coefficients(self):
        """Return (a, b) with f(x1 + t) = a * t² + b * t + y1."""
        length = self._length
        a = self._d() / 2 / (length * length)
        b = (4 * self.yc - 3 * self.y1 - self.y2) / length
        return a, b

    def _vertex(self) -> Optional[float]:
        """x of the extremum, if it falls strictly inside (x1, x2)."""
        a, b = self._local_coefficients()
        if a == 0:
            return None
        t = -b / (2 * a)
        return self.x1 + t if 0 < t < self._length else None

    def ymin(self) -> float:
        # Minimo interno solo se la parabola è convessa (d > 0)
        if self._d() > 0:
            x = self._vertex()
            if x is not None:
                return min(self.value_at(x), self.y1, self.y2)
        return min(self.y1, self.y2)

    def ymax(self) -> float:
        # Massimo interno solo se la parabola è concava (d < 0)
        if self._d() < 0:
            x = self._vertex()
            if x is not None:
                return max(self.value_at(x), self.y1, self.y2)
        return max(self.y1, self.y2)

    def _values(self, x):
        x1, x2, y1, y2, yc = self.x1, self.x2, self.y1, self.y2, self.yc
        m = (x1 + x2) / 2
        w = self._length * self._length
        return (2 * (x - m) * (y1 * (x - x2) + y2 * (x - x1)) - 4 * yc * (x - x1) * (x - x2)) / w

    def _derivatives(self, x):
        a, b = self._local_coefficients()
        return 2 * a * (x - self.x1) + b

    def _integrals(self, x):
        a, b = self._local_coefficients()
        t = x - self.x1
        return t * (self.y1 + t * (b / 2 + t * a / 3))

    def _time_integrals(self, x):
        """
        ∫[0, t] ds / (a s² + b s + y1), branching on the discriminant.

        Every branch returns as soon as it matches.
        """
        a, b = self._local_coefficients()
        y1 = self.y1
        t = x - self.x1

        if abs(a) < QUADRATIC_EPS:
            if abs(b) < QUADRATIC_EPS:
                log_fallback(type(self).__name__, 'time integral as constant', a=a, b=b)
                return t / y1
            log_fallback(type(self).__name__, 'time integral as linear', a=a, b=b)
            return np.log1p(b * t / y1) / b

        q = b * b - 4 * a * y1

        if q == 0:
            return 2 / b - 2 / (2 * a * t + b)

        if q < 0:
            sq = math.sqrt(-q)
            return 2 * (np.arctan((2 * a * t + b) / sq) - math.atan(b / sq)) / sq

        # q > 0: radici reali fuori dal dominio; artanh dentro le radici,
        # arcoth (= artanh(1/v)) fuori
        sq = math.sqrt(q)
        v1 = b / sq
        v = (2 * a * t + b) / sq
        if abs(v1) < 1:
            return -2 * (np.arctanh(v) - math.atanh(v1)) / sq
        return -2 * (np.arctanh(1 / v) - math.atanh(1 / v1)) / sq

    def translate_y(self, dy: float) -> 'QuadraticAutomationSegment':
        self.y1 += dy
        self.y2 += dy
        self.yc += dy
        return self

    def scale_y(self, factor: float) -> 'QuadraticAutomationSegment':
        self.y1 *= factor
        self.y2 *= factor
        self.yc *= factor
        return self

    def __repr__(self):
        return (
            f"{self.__class__.__name__}("
            f"x1={self.x1:.6g}, x2={self.x2:.6g}, "
            f"y1={self.y1:.6g}, y2={self.y2:.6g}, yc={self.yc:.6g})"
        )


# =============================================================================
# SHARED FORMULAS
# =============================================================================

def _linear_time_integrals(x, x1, y1, slope, kind, eps=LINEAR_TIME_INTEGRAL_EPS):
    """∫[x1, x] dt / (slope * (t - x1) + y1)."""
    if abs(slope) < eps:
        # Pendenza quasi nulla: la formula logaritmica esplode, usa la costante
        log_fallback(kind, 'time integral as constant', slope=slope)
        return (x - x1) / y1
    return np.log1p(slope * (x - x1) / y1) / slope
