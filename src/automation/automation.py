# automation.py
"""
Automation: funzione a tratti x -> y composta da AutomationSegment contigui.

Design Pattern: Composite
- Automation possiede una lista ordinata di segmenti (nessun back-reference)
- Ogni mutazione strutturale chiama relayout(): x1 di ogni segmento viene
  ricalcolato dall'x2 del precedente (0 per il primo), le lunghezze restano

Semantica:
- Le automation partono sempre da x = 0 e non hanno buchi
- Su un'interfaccia vince il segmento a destra (dominio [x1, x2))
- Oltre la fine: value = y2 dell'ultimo segmento, derivative = 0,
  integral e time integral estrapolano con y2 costante

Uso performante:
    buffer = np.array([0, 1, 2, 3, 4, 5, 6, 7, 8, 9], dtype=float)
    automation.values(buffer, sorted=True)
    # buffer ora contiene i valori

Uso comodo (lento):
    automation.value_at(0.5)
"""

import copy
from typing import Callable, Iterator, List, Optional

import numpy as np

from automation.automation_errors import (
    DegenerateScale,
    IndexOutOfBounds,
    InvalidParameter,
    UndefinedTimeIntegral,
)
from automation.automation_segment import AutomationSegment, as_query_array, write_back
from shared.logger import log_time_integral_rejected
from shared.utils import is_sorted


# Massimo numero di iterazioni della ricerca binaria nel percorso non ordinato
MAX_SEARCH_ITERATIONS = 50


class Automation:
    """
    Ordered, gapless sequence of automation segments starting at x = 0.

    The four batched queries (values, derivatives, integrals, time_integrals)
    overwrite the caller's buffer in place. When the buffer is sorted, a
    cursor walks the buffer once while segments are visited left to right,
    each segment evaluating a zero-copy slice of the buffer. Unsorted
    buffers locate every position independently with a bounded binary
    search over the segments.
    """

    def __init__(self, segments: Optional[List[AutomationSegment]] = None):
        """
        Args:
            segments: initial segments, in x order (only their lengths matter)
        """
        if segments is None:
            segments = []
        if not isinstance(segments, (list, tuple)):
            raise InvalidParameter(
                f"Automation takes a list of segments, got {type(segments).__name__}"
            )

        for seg in segments:
            self._check_segment(seg)

        self.segments: List[AutomationSegment] = list(segments)
        self.relayout()

    # =========================================================================
    # STRUCTURE
    # =========================================================================

    @property
    def segment_count(self) -> int:
        return len(self.segments)

    @property
    def length(self) -> float:
        return self.segments[-1].x2 if self.segments else 0.0

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[AutomationSegment]:
        return iter(self.segments)

    def get_segment(self, i: int) -> AutomationSegment:
        self._check_index(i, len(self.segments))
        return self.segments[i]

    def set_segment(self, i: int, seg: AutomationSegment) -> 'Automation':
        self._check_index(i, len(self.segments))
        self._check_segment(seg)
        self.segments[i] = seg
        self.relayout()
        return self

    def insert_segment(self, i: int, seg: AutomationSegment) -> 'Automation':
        """Insert seg at index i (i == segment_count appends)."""
        self._check_index(i, len(self.segments) + 1)
        self._check_segment(seg)
        self.segments.insert(i, seg)
        self.relayout()
        return self

    def remove_segment(self, i: int) -> 'Automation':
        self._check_index(i, len(self.segments))
        del self.segments[i]
        self.relayout()
        return self

    def remove_segment_if(self, predicate: Callable[[AutomationSegment], bool]) -> 'Automation':
        self.segments = [seg for seg in self.segments if not predicate(seg)]
        self.relayout()
        return self

    def add_segment(self, seg: AutomationSegment) -> 'Automation':
        """Append a segment at the end of the automation."""
        self._check_segment(seg)
        self.segments.append(seg)
        self.relayout()
        return self

    def relayout(self):
        """Justify every segment after the previous one, starting at x = 0."""
        x = 0.0
        for seg in self.segments:
            seg.x1 = x
            x = seg.x2

    @staticmethod
    def _check_index(i: int, limit: int):
        if not isinstance(i, (int, np.integer)) or isinstance(i, bool) or not 0 <= i < limit:
            raise IndexOutOfBounds(f"Index {i} out of bounds [0, {limit}).")

    @staticmethod
    def _check_segment(seg):
        if not isinstance(seg, AutomationSegment):
            raise InvalidParameter(
                f"Expected an AutomationSegment, got {type(seg).__name__}"
            )

    # =========================================================================
    # GLOBAL QUERIES
    # =========================================================================

    def ymin(self) -> float:
        return min((seg.ymin() for seg in self.segments), default=float('inf'))

    def ymax(self) -> float:
        return max((seg.ymax() for seg in self.segments), default=float('-inf'))

    # =========================================================================
    # BATCHED QUERIES
    # =========================================================================

    def values(self, buffer, sorted: bool = False):
        """
        Overwrite buffer with the automation value at each position.

        Args:
            buffer: numpy float array (or list) of positions, mutated in place
            sorted: hint that buffer is non-decreasing (otherwise verified)

        Returns:
            The same buffer
        """
        array = as_query_array(buffer)

        if not self.segments:
            array[...] = 0.0
        elif sorted or is_sorted(array):
            self._sorted_pass(array, 'values')
        else:
            self._generic_pass(array, 'values')

        return write_back(buffer, array)

    def derivatives(self, buffer, sorted: bool = False):
        """Overwrite buffer with derivatives; 0 beyond the end."""
        array = as_query_array(buffer)

        if not self.segments:
            array[...] = 0.0
        elif sorted or is_sorted(array):
            self._sorted_pass(array, 'derivatives')
        else:
            self._generic_pass(array, 'derivatives')

        return write_back(buffer, array)

    def integrals(self, buffer, sorted: bool = False):
        """Overwrite buffer with ∫[0, x] f; linear extrapolation beyond the end."""
        array = as_query_array(buffer)

        if not self.segments:
            array[...] = 0.0
        elif sorted or is_sorted(array):
            self._sorted_pass(array, 'integrals')
        else:
            self._generic_pass(array, 'integrals')

        return write_back(buffer, array)

    def time_integrals(self, buffer, sorted: bool = False):
        """
        Overwrite buffer with ∫[0, x] 1/f (elapsed time for a tempo curve).

        Raises:
            UndefinedTimeIntegral: if ymin() <= 0 or the automation is empty;
                the buffer is left untouched
        """
        self._time_integral_check()
        array = as_query_array(buffer)

        if sorted or is_sorted(array):
            self._sorted_pass(array, 'time_integrals')
        else:
            self._generic_pass(array, 'time_integrals')

        return write_back(buffer, array)

    def _time_integral_check(self):
        if not self.segments:
            raise UndefinedTimeIntegral("Time integral of an empty automation does not exist.")

        ymin = self.ymin()
        if ymin <= 0:
            log_time_integral_rejected(f"Automation({len(self.segments)} segments)", ymin)
            raise UndefinedTimeIntegral(
                f"Time integral does not exist, because the y minimum ({ymin}) is not positive."
            )

    # =========================================================================
    # SCALAR QUERIES (one-element buffer)
    # =========================================================================

    def value_at(self, x: float) -> float:
        return float(self.values(np.array([x], dtype=np.float64), sorted=True)[0])

    def derivative_at(self, x: float) -> float:
        return float(self.derivatives(np.array([x], dtype=np.float64), sorted=True)[0])

    def integral_at(self, x: float) -> float:
        return float(self.integrals(np.array([x], dtype=np.float64), sorted=True)[0])

    def time_integral_at(self, x: float) -> float:
        return float(self.time_integrals(np.array([x], dtype=np.float64), sorted=True)[0])

    def sample(self, start: float, stop: float, rate: float) -> np.ndarray:
        """
        Values at start + i / rate for every tick in [start, stop).

        Args:
            start: first position
            stop: end position (excluded)
            rate: ticks per unit of x (e.g. control rate in Hz)

        Returns:
            numpy array of values, one per tick
        """
        if rate <= 0:
            raise InvalidParameter(f"rate must be > 0, got {rate}")
        count = max(0, int(np.ceil((stop - start) * rate)))
        ticks = start + np.arange(count, dtype=np.float64) / rate
        return self.values(ticks, sorted=True)

    # =========================================================================
    # SORTED FAST PATH
    # =========================================================================

    def _sorted_pass(self, array: np.ndarray, kind: str):
        """
        Evaluate a non-decreasing buffer with a single left-to-right sweep.

        j is the first position not yet computed. For each segment, the
        positions it owns are array[j:k] where k is the first index with
        array[k] >= x2, found by binary search on the unconsumed suffix.
        """
        segments = self.segments
        cumulative = kind in ('integrals', 'time_integrals')
        size = array.size
        running = 0.0
        j = 0

        for seg in segments:
            if j == size:
                break

            x2 = seg.x2

            # Segmento irrilevante: x2 già superato (o lunghezza nulla)
            if x2 <= array[j] or seg.length == 0:
                if cumulative:
                    running += self._span(seg, kind)
                continue

            k = j + int(np.searchsorted(array[j:], x2, side='left'))
            view = array[j:k]
            getattr(seg, kind)(view)

            if cumulative:
                view += running
                running += self._span(seg, kind)

            j = k

        if j < size:
            self._fill_beyond(array[j:], kind, running)

    # =========================================================================
    # GENERIC PATH
    # =========================================================================

    def _generic_pass(self, array: np.ndarray, kind: str):
        """Locate and evaluate every position independently."""
        segments = self.segments
        length = self.length
        cumulative = kind in ('integrals', 'time_integrals')
        prefix = self._prefix_sums(kind) if cumulative else None
        scalar = {
            'values': 'value_at',
            'derivatives': 'derivative_at',
            'integrals': 'integral_at',
            'time_integrals': 'time_integral_at',
        }[kind]

        for i in range(array.size):
            x = float(array[i])

            if max(x, 0.0) >= length:
                # Oltre l'ultimo segmento
                self._fill_beyond(array[i:i + 1], kind, prefix[-1] if cumulative else 0.0)
                continue

            idx = self._locate(max(x, 0.0))
            result = getattr(segments[idx], scalar)(x)

            if cumulative:
                result += prefix[idx - 1] if idx > 0 else 0.0

            array[i] = result

    def _locate(self, x: float) -> int:
        """Index of the first segment with x2 > x (0 <= x < length)."""
        segments = self.segments
        lo, hi = 0, len(segments) - 1

        for _ in range(MAX_SEARCH_ITERATIONS):
            if lo >= hi:
                break
            mid = (lo + hi) // 2
            if segments[mid].x2 > x:
                hi = mid
            else:
                lo = mid + 1

        return hi

    def _prefix_sums(self, kind: str) -> List[float]:
        """Cumulative full-span integral after each segment."""
        sums = []
        running = 0.0
        for seg in self.segments:
            running += self._span(seg, kind)
            sums.append(running)
        return sums

    # =========================================================================
    # SHARED HELPERS
    # =========================================================================

    @staticmethod
    def _span(seg: AutomationSegment, kind: str) -> float:
        """Integral (or time integral) of seg over its whole extent."""
        if kind == 'integrals':
            return seg.integral_at(seg.x2)
        return seg.time_integral_at(seg.x2)

    def _fill_beyond(self, view: np.ndarray, kind: str, running: float):
        """Positions at or beyond the end of the automation."""
        last = self.segments[-1]

        if kind == 'values':
            view[...] = last.y2
        elif kind == 'derivatives':
            view[...] = 0.0
        elif kind == 'integrals':
            view[...] = running + (view - last.x2) * last.y2
        else:
            view[...] = running + (view - last.x2) / last.y2

    # =========================================================================
    # GEOMETRY
    # =========================================================================

    def scale_x(self, factor: float) -> 'Automation':
        """
        Scale every segment's extent; a negative factor reverses the order.

        Raises:
            DegenerateScale: if factor == 0
        """
        if factor == 0:
            raise DegenerateScale("Can't scale an automation by a factor of 0")

        for seg in self.segments:
            seg.scale_x(factor)

        if factor < 0:
            self.segments.reverse()

        self.relayout()
        return self

    def scale_y(self, factor: float) -> 'Automation':
        for seg in self.segments:
            seg.scale_y(factor)
        return self

    def translate_y(self, dy: float) -> 'Automation':
        for seg in self.segments:
            seg.translate_y(dy)
        return self

    def clone(self) -> 'Automation':
        return Automation([seg.clone() for seg in self.segments])

    def __deepcopy__(self, memo):
        return self.clone()

    def __repr__(self):
        return (
            f"Automation(segments={len(self.segments)}, "
            f"length={self.length:.6g})"
        )
