# test_automation_segment.py
"""
Test suite per la gerarchia AutomationSegment.

Organizzazione:
1. Valori noti per ogni forma
2. Coerenza numerica (derivata, integrale, time integral)
3. Buffer in place
4. Validazione ed errori
5. Mutazioni geometriche
"""

import math

import numpy as np
import pytest

from automation.automation_errors import (
    DegenerateScale,
    InvalidBounds,
    InvalidParameter,
    UndefinedTimeIntegral,
)
from automation.automation_segment import (
    ConstantAutomationSegment,
    ExponentialAutomationSegment,
    LinearAutomationSegment,
    QuadraticAutomationSegment,
)


# =============================================================================
# HELPERS
# =============================================================================

def simpson(f, a, b, n=2000):
    """Integrale composito di Simpson di una f vettoriale su [a, b]."""
    x = np.linspace(a, b, n + 1)
    y = f(x)
    h = (b - a) / n
    return h / 3 * (y[0] + y[-1] + 4 * y[1:-1:2].sum() + 2 * y[2:-1:2].sum())


def evaluate(method, x):
    """Applica un metodo batched a una copia delle posizioni."""
    return method(np.array(x, dtype=np.float64, copy=True))


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def power_of_two():
    """Esponenziale 2^x su [0, 2]: yc = media geometrica di 1 e 4."""
    return ExponentialAutomationSegment(x1=0, y1=1, x2=2, y2=4, yc=2)


@pytest.fixture
def arch():
    """Parabola x(2 - x) su [0, 2]: (0, 0), (1, 1), (2, 0)."""
    return QuadraticAutomationSegment(x1=0, y1=0, x2=2, y2=0, yc=1)


# Forme strettamente positive su tutto il dominio, una per ramo del time integral
POSITIVE_SEGMENTS = [
    pytest.param(ConstantAutomationSegment(x1=1, x2=3, c=2.5), id='constant'),
    pytest.param(LinearAutomationSegment(x1=1, y1=2, x2=4, y2=7), id='linear-up'),
    pytest.param(LinearAutomationSegment(x1=0, y1=9, x2=2, y2=3), id='linear-down'),
    pytest.param(ExponentialAutomationSegment(x1=0, y1=1, x2=2, y2=4, yc=2), id='exp-pure'),
    pytest.param(ExponentialAutomationSegment(x1=1, y1=5, x2=4, y2=1, yc=2), id='exp-offset'),
    pytest.param(ExponentialAutomationSegment(x1=0, y1=60, x2=2, y2=80, yc=70), id='exp-linear'),
    pytest.param(QuadraticAutomationSegment(x1=0, y1=2, x2=2, y2=2, yc=1), id='quad-atan'),
    pytest.param(QuadraticAutomationSegment(x1=0, y1=1, x2=2, y2=1, yc=2), id='quad-artanh'),
    pytest.param(QuadraticAutomationSegment(x1=0, y1=1, x2=1, y2=5, yc=2.75), id='quad-arcoth'),
    pytest.param(QuadraticAutomationSegment(x1=0, y1=1, x2=1, y2=4, yc=2.25), id='quad-double-root'),
    pytest.param(QuadraticAutomationSegment(x1=0, y1=2, x2=2, y2=4, yc=3), id='quad-linear'),
    pytest.param(QuadraticAutomationSegment(x1=0, y1=3, x2=1, y2=3, yc=3), id='quad-constant'),
    # Lontano dall'origine: i risultati non dipendono da x1
    pytest.param(LinearAutomationSegment(x1=1e5, y1=2, y2=7, length=3), id='linear-far'),
    pytest.param(ExponentialAutomationSegment(x1=1e4, y1=5, y2=1, yc=2, length=3), id='exp-offset-far'),
    pytest.param(QuadraticAutomationSegment(x1=1e4, y1=2, y2=2, yc=1, length=2), id='quad-atan-far'),
    pytest.param(QuadraticAutomationSegment(x1=1e5, y1=1, y2=5, yc=2.75, length=1), id='quad-arcoth-far'),
    pytest.param(QuadraticAutomationSegment(x1=1e5, y1=100, y2=100, yc=99.99, length=2), id='quad-near-flat-far'),
    pytest.param(QuadraticAutomationSegment(x1=1e4, y1=3, y2=3, yc=3, length=1), id='quad-constant-far'),
]


# =============================================================================
# 1. VALORI NOTI
# =============================================================================

class TestKnownValues:

    def test_constant(self):
        seg = ConstantAutomationSegment(x1=0, x2=2, c=3)
        assert seg.value_at(1) == 3
        assert seg.derivative_at(1) == 0
        assert seg.integral_at(2) == pytest.approx(6)
        assert seg.time_integral_at(2) == pytest.approx(2 / 3)
        assert seg.y1 == seg.y2 == 3

    def test_linear(self):
        seg = LinearAutomationSegment(x1=0, y1=0, x2=4, y2=8)
        assert seg.value_at(1) == pytest.approx(2)
        assert seg.derivative_at(3) == pytest.approx(2)
        assert seg.integral_at(4) == pytest.approx(16)
        assert seg.slope() == pytest.approx(2)

    def test_linear_time_integral_closed_form(self):
        seg = LinearAutomationSegment(x1=0, y1=1, x2=1, y2=2)
        # ∫ 1 / (1 + t) = ln 2
        assert seg.time_integral_at(1) == pytest.approx(math.log(2))

    def test_exponential_geometric_mean_is_power_curve(self, power_of_two):
        for x in (0, 0.5, 1, 1.5, 2):
            assert power_of_two.value_at(x) == pytest.approx(2 ** x)

    def test_exponential_integrals(self, power_of_two):
        assert power_of_two.integral_at(2) == pytest.approx(3 / math.log(2))
        assert power_of_two.time_integral_at(2) == pytest.approx(0.75 / math.log(2))

    def test_exponential_midpoint_control(self):
        # yc nel punto medio: la forma degenera in una retta
        seg = ExponentialAutomationSegment(x1=0, y1=60, x2=2, y2=80, yc=70)
        assert seg.value_at(1) == pytest.approx(70)
        assert seg.derivative_at(0.3) == pytest.approx(10)

    def test_exponential_passes_through_control_point(self):
        seg = ExponentialAutomationSegment(x1=3, y1=10, x2=7, y2=2, yc=3)
        assert seg.value_at(3) == pytest.approx(10)
        assert seg.value_at(5) == pytest.approx(3)
        assert seg.value_at(7) == pytest.approx(2)

    def test_quadratic_arch(self, arch):
        assert arch.value_at(1) == pytest.approx(1)
        assert arch.value_at(0.5) == pytest.approx(0.75)
        assert arch.derivative_at(0) == pytest.approx(2)
        assert arch.derivative_at(1) == pytest.approx(0)
        assert arch.integral_at(2) == pytest.approx(4 / 3)

    def test_quadratic_passes_through_three_points(self):
        seg = QuadraticAutomationSegment(x1=2, y1=-1, x2=6, y2=5, yc=7)
        assert seg.value_at(2) == pytest.approx(-1)
        assert seg.value_at(4) == pytest.approx(7)
        assert seg.value_at(6) == pytest.approx(5)

    def test_quadratic_double_root_time_integral(self):
        # (x + 1)² su [0, 1]: ∫ 1/(x+1)² = 1/2
        seg = QuadraticAutomationSegment(x1=0, y1=1, x2=1, y2=4, yc=2.25)
        assert seg.time_integral_at(1) == pytest.approx(0.5)

    def test_integrals_start_at_zero(self):
        segments = [
            ConstantAutomationSegment(x1=2, x2=5, c=4),
            LinearAutomationSegment(x1=2, y1=1, x2=5, y2=3),
            ExponentialAutomationSegment(x1=2, y1=1, x2=5, y2=3, yc=1.5),
            QuadraticAutomationSegment(x1=2, y1=1, x2=5, y2=3, yc=4),
        ]
        for seg in segments:
            assert seg.integral_at(2) == pytest.approx(0)
            assert seg.time_integral_at(2) == pytest.approx(0)


class TestBounds:

    def test_linear_bounds(self):
        seg = LinearAutomationSegment(y1=5, y2=-2)
        assert seg.ymin() == -2
        assert seg.ymax() == 5

    def test_exponential_bounds_are_endpoints(self):
        seg = ExponentialAutomationSegment(y1=3, y2=9, yc=4)
        assert seg.ymin() == 3
        assert seg.ymax() == 9

    def test_quadratic_concave_interior_maximum(self, arch):
        assert arch.ymax() == pytest.approx(1)
        assert arch.ymin() == pytest.approx(0)

    def test_quadratic_convex_interior_minimum(self):
        seg = QuadraticAutomationSegment(x1=0, y1=2, x2=2, y2=2, yc=1)
        assert seg.ymin() == pytest.approx(1)
        assert seg.ymax() == pytest.approx(2)

    def test_quadratic_vertex_outside_uses_endpoints(self):
        seg = QuadraticAutomationSegment(x1=0, y1=1, x2=1, y2=5, yc=2.75)
        assert seg.ymin() == pytest.approx(1)
        assert seg.ymax() == pytest.approx(5)

    def test_quadratic_overshoot(self):
        # yc sotto y1: la curva scende sotto il minimo degli estremi
        seg = QuadraticAutomationSegment(x1=0, y1=0, x2=1, y2=1, yc=-1)
        assert seg.ymin() < 0
        assert seg.ymax() == pytest.approx(1)


# =============================================================================
# 2. COERENZA NUMERICA
# =============================================================================

class TestNumericalConsistency:

    @pytest.mark.parametrize('seg', POSITIVE_SEGMENTS)
    def test_derivative_matches_central_difference(self, seg):
        h = 1e-5
        x = np.linspace(seg.x1 + 0.1 * seg.length, seg.x2 - 0.1 * seg.length, 7)
        numeric = (evaluate(seg.values, x + h) - evaluate(seg.values, x - h)) / (2 * h)
        assert np.allclose(evaluate(seg.derivatives, x), numeric, rtol=1e-5, atol=1e-6)

    @pytest.mark.parametrize('seg', POSITIVE_SEGMENTS)
    def test_integral_matches_simpson(self, seg):
        expected = simpson(lambda x: evaluate(seg.values, x), seg.x1, seg.x2)
        assert seg.integral_at(seg.x2) == pytest.approx(expected, rel=1e-8)

    @pytest.mark.parametrize('seg', POSITIVE_SEGMENTS)
    def test_time_integral_matches_simpson(self, seg):
        mid = (seg.x1 + seg.x2) / 2
        for end in (mid, seg.x2):
            expected = simpson(lambda x: 1 / evaluate(seg.values, x), seg.x1, end)
            assert seg.time_integral_at(end) == pytest.approx(expected, rel=1e-7)

    @pytest.mark.parametrize('seg', POSITIVE_SEGMENTS)
    def test_endpoints(self, seg):
        assert seg.value_at(seg.x1) == pytest.approx(seg.y1)
        assert seg.value_at(seg.x2) == pytest.approx(seg.y2)

    @pytest.mark.parametrize('seg', POSITIVE_SEGMENTS)
    def test_scalar_matches_batched(self, seg):
        x = np.linspace(seg.x1, seg.x2, 11)
        batched = evaluate(seg.values, x)
        scalar = np.array([seg.value_at(v) for v in x])
        assert np.allclose(batched, scalar, rtol=1e-14, atol=0)


class TestPositionInvariance:
    """La stessa forma dà gli stessi risultati ovunque la metta il relayout."""

    @pytest.mark.parametrize('x1', [0.0, 1e4, 1e5])
    def test_quadratic_near_flat_time_integral(self, x1):
        # a ≈ 5e-9: ramo degenere; 1/f ≈ 1/100 su una lunghezza 2
        seg = QuadraticAutomationSegment(x1=x1, y1=100, y2=100, yc=100 - 5e-9, length=2)
        assert seg.time_integral_at(seg.x2) == pytest.approx(0.02, rel=1e-8)

    @pytest.mark.parametrize('x1', [1e4, 1e5])
    def test_quadratic_constant_branch_divides_by_y1(self, x1):
        seg = QuadraticAutomationSegment(x1=x1, y1=3, y2=3, yc=3, length=1)
        assert seg.time_integral_at(seg.x2) == pytest.approx(1 / 3, rel=1e-12)

    def test_quadratic_integral_far_from_origin(self):
        seg = QuadraticAutomationSegment(x1=1e5, y1=100, y2=100, yc=99.99, length=2)
        # Simpson è esatto sulle parabole: L/6 * (y1 + 4*yc + y2)
        expected = 2 / 6 * (100 + 4 * 99.99 + 100)
        assert seg.integral_at(seg.x2) == pytest.approx(expected, rel=1e-12)

    @pytest.mark.parametrize('params', [
        dict(y1=100, y2=100, yc=99.99),
        dict(y1=1, y2=5, yc=2.75),
        dict(y1=2, y2=2, yc=1),
        dict(y1=1, y2=1, yc=2),
        dict(y1=2, y2=4, yc=3),
    ])
    def test_quadratic_same_results_anywhere(self, params):
        near = QuadraticAutomationSegment(x1=0, length=2, **params)
        far = QuadraticAutomationSegment(x1=1e5, length=2, **params)
        for t in (0.5, 1.25, 2.0):
            assert far.derivative_at(1e5 + t) == pytest.approx(near.derivative_at(t), rel=1e-8, abs=1e-9)
            assert far.integral_at(1e5 + t) == pytest.approx(near.integral_at(t), rel=1e-10)
            assert far.time_integral_at(1e5 + t) == pytest.approx(near.time_integral_at(t), rel=1e-10)

    def test_quadratic_vertex_far_from_origin(self):
        seg = QuadraticAutomationSegment(x1=1e5, y1=2, y2=2, yc=1, length=2)
        assert seg.ymin() == pytest.approx(1)


# =============================================================================
# 3. BUFFER IN PLACE
# =============================================================================

class TestInPlaceBuffers:

    def test_ndarray_is_overwritten(self):
        seg = LinearAutomationSegment(x1=0, y1=0, x2=1, y2=10)
        buffer = np.array([0.0, 0.5, 1.0])
        result = seg.values(buffer)
        assert result is buffer
        assert np.allclose(buffer, [0, 5, 10])

    def test_view_writes_into_parent(self):
        seg = ConstantAutomationSegment(x1=0, x2=10, c=7)
        parent = np.arange(6, dtype=np.float64)
        seg.values(parent[2:4])
        assert parent.tolist() == [0, 1, 7, 7, 4, 5]

    def test_list_is_overwritten(self):
        seg = LinearAutomationSegment(x1=0, y1=0, x2=1, y2=10)
        buffer = [0.0, 1.0]
        result = seg.values(buffer)
        assert result is buffer
        assert buffer == pytest.approx([0, 10])

    def test_integer_array_rejected(self):
        seg = LinearAutomationSegment()
        with pytest.raises(InvalidParameter):
            seg.values(np.array([0, 1]))

    def test_empty_buffer(self):
        seg = LinearAutomationSegment()
        buffer = np.array([], dtype=np.float64)
        assert seg.integrals(buffer).size == 0

    def test_float32_buffer(self):
        seg = LinearAutomationSegment(x1=0, y1=0, x2=2, y2=1)
        buffer = np.array([1.0, 2.0], dtype=np.float32)
        seg.values(buffer)
        assert buffer.dtype == np.float32
        assert np.allclose(buffer, [0.5, 1.0])


# =============================================================================
# 4. VALIDAZIONE ED ERRORI
# =============================================================================

class TestValidation:

    def test_x2_before_x1(self):
        with pytest.raises(InvalidBounds):
            LinearAutomationSegment(x1=2, y1=0, x2=1, y2=1)

    def test_negative_length(self):
        with pytest.raises(InvalidBounds):
            ConstantAutomationSegment(length=-1)

    @pytest.mark.parametrize('cls', [
        LinearAutomationSegment,
        ExponentialAutomationSegment,
        QuadraticAutomationSegment,
    ])
    def test_zero_length_forbidden_for_non_constant(self, cls):
        with pytest.raises(InvalidBounds):
            cls(x1=1, y1=1, x2=1, y2=3)

    def test_zero_length_constant_allowed(self):
        seg = ConstantAutomationSegment(x1=3, x2=3, c=1)
        assert seg.length == 0
        assert seg.integral_at(3) == 0

    def test_x2_and_length_together(self):
        with pytest.raises(InvalidParameter):
            LinearAutomationSegment(x1=0, x2=1, length=1)

    def test_default_extent_and_values(self):
        seg = LinearAutomationSegment()
        assert (seg.x1, seg.x2, seg.y1, seg.y2) == (0, 1, 0, 1)

    def test_length_keyword(self):
        seg = LinearAutomationSegment(x1=2, y1=0, y2=1, length=3)
        assert seg.x2 == 5

    def test_non_finite_rejected(self):
        with pytest.raises(InvalidParameter):
            LinearAutomationSegment(y1=float('nan'))
        with pytest.raises(InvalidParameter):
            ConstantAutomationSegment(c=float('inf'))

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidParameter):
            LinearAutomationSegment(y1='high')

    @pytest.mark.parametrize('yc', [0, 10, 20, -5])
    def test_exponential_control_point_must_be_inside(self, yc):
        with pytest.raises(InvalidParameter):
            ExponentialAutomationSegment(y1=0, y2=10, yc=yc)

    def test_exponential_flat_is_rejected(self):
        # y1 == y2: nessun yc strettamente compreso
        with pytest.raises(InvalidParameter):
            ExponentialAutomationSegment(y1=5, y2=5)

    def test_exponential_setter_validates(self, power_of_two):
        with pytest.raises(InvalidParameter):
            power_of_two.yc = 5
        assert power_of_two.yc == 2

    def test_quadratic_control_point_is_free(self):
        seg = QuadraticAutomationSegment(y1=0, y2=1, yc=100)
        assert seg.yc == 100

    def test_errors_share_base_class(self):
        from automation.automation_errors import AutomationError
        for exc in (InvalidBounds, InvalidParameter, DegenerateScale, UndefinedTimeIntegral):
            assert issubclass(exc, AutomationError)


class TestTimeIntegralPrecondition:

    @pytest.mark.parametrize('seg', [
        ConstantAutomationSegment(c=0),
        ConstantAutomationSegment(c=-1),
        LinearAutomationSegment(y1=-1, y2=1),
        LinearAutomationSegment(y1=0, y2=1),
        QuadraticAutomationSegment(y1=1, y2=1, yc=-1),
    ])
    def test_non_positive_minimum_raises(self, seg):
        with pytest.raises(UndefinedTimeIntegral):
            seg.time_integral_at(0.5)

    def test_buffer_untouched_on_error(self):
        seg = LinearAutomationSegment(y1=-1, y2=1)
        buffer = np.array([0.1, 0.2])
        with pytest.raises(UndefinedTimeIntegral):
            seg.time_integrals(buffer)
        assert buffer.tolist() == [0.1, 0.2]


# =============================================================================
# 5. MUTAZIONI GEOMETRICHE
# =============================================================================

class TestMutation:

    def test_translate_x(self):
        seg = LinearAutomationSegment(x1=0, y1=0, x2=2, y2=2)
        seg.translate_x(3)
        assert (seg.x1, seg.x2) == (3, 5)
        assert seg.value_at(4) == pytest.approx(1)

    def test_translate_y_exponential_keeps_shape(self, power_of_two):
        power_of_two.translate_y(10)
        assert power_of_two.value_at(1) == pytest.approx(12)
        assert power_of_two.yc == 12

    def test_translate_y_constant(self):
        seg = ConstantAutomationSegment(c=1)
        seg.translate_y(2)
        assert seg.c == 3
        assert seg.y2 == 3

    def test_scale_x_positive(self):
        seg = LinearAutomationSegment(x1=1, y1=0, x2=3, y2=4)
        seg.scale_x(2)
        assert (seg.x1, seg.x2) == (2, 6)
        assert seg.value_at(4) == pytest.approx(2)

    def test_scale_x_negative_mirrors(self):
        seg = LinearAutomationSegment(x1=1, y1=0, x2=3, y2=4)
        seg.scale_x(-1)
        assert (seg.x1, seg.x2) == (-3, -1)
        assert (seg.y1, seg.y2) == (4, 0)
        assert seg.value_at(-1.5) == pytest.approx(1)

    def test_scale_x_negative_exponential(self, power_of_two):
        original = power_of_two.clone()
        power_of_two.scale_x(-1)
        for x in (0.25, 0.5, 1.5):
            assert power_of_two.value_at(-x) == pytest.approx(original.value_at(x))

    def test_scale_x_negative_quadratic(self):
        seg = QuadraticAutomationSegment(x1=0, y1=1, x2=1, y2=5, yc=2.75)
        original = seg.clone()
        seg.scale_x(-2)
        for x in (0.2, 0.5, 0.9):
            assert seg.value_at(-2 * x) == pytest.approx(original.value_at(x))

    def test_scale_x_zero(self):
        with pytest.raises(DegenerateScale):
            LinearAutomationSegment().scale_x(0)

    def test_scale_y(self, arch):
        arch.scale_y(3)
        assert arch.value_at(1) == pytest.approx(3)

    def test_scale_y_exponential_rejects_degenerate(self, power_of_two):
        with pytest.raises(InvalidParameter):
            power_of_two.scale_y(0)
        # Stato invariato
        assert (power_of_two.y1, power_of_two.y2, power_of_two.yc) == (1, 4, 2)

    def test_scale_y_exponential_negative(self, power_of_two):
        power_of_two.scale_y(-1)
        assert power_of_two.value_at(1) == pytest.approx(-2)

    def test_clone_is_independent(self, arch):
        copy = arch.clone()
        copy.translate_y(5)
        assert arch.value_at(1) == pytest.approx(1)
        assert copy.value_at(1) == pytest.approx(6)

    def test_delta_y(self):
        assert LinearAutomationSegment(y1=3, y2=-1).delta_y() == -4

    def test_repr(self, power_of_two):
        assert 'ExponentialAutomationSegment' in repr(power_of_two)
        assert 'yc=2' in repr(power_of_two)
