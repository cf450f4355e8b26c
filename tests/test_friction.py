"""
Tests for the friction factor approximations.
"""

import math

import pytest
from scipy.optimize import bisect

from syscurve.exceptions import NoMethodError, UnsupportedMethodError
from syscurve.friction import SerghidesApproximation, get_approximator
from syscurve.types import ApproximationMethod


def colebrook_white(relative_roughness: float, reynolds_number: float) -> float:
    """Colebrook-White friction factor solved by bisection on 1/sqrt(f)."""

    def residual(x: float) -> float:
        return x + 2.0 * math.log10(
            relative_roughness / 3.7 + 2.51 * x / reynolds_number
        )

    x = bisect(residual, 0.5, 50.0, xtol=1e-12, maxiter=500)
    return 1.0 / x**2


@pytest.mark.parametrize("reynolds_number", [1.0, 64.0, 500.0, 1999.9, 2299.999])
def test_laminar_friction_factor_is_hagen_poiseuille(approximator, reynolds_number):
    assert approximator.calculate_friction_factor(0.001, reynolds_number) == (
        64.0 / reynolds_number
    )


def test_laminar_friction_factor_ignores_roughness(approximator):
    smooth = approximator.calculate_friction_factor(0.0, 1000.0)
    rough = approximator.calculate_friction_factor(0.05, 1000.0)
    assert smooth == rough == 0.064


@pytest.mark.parametrize("relative_roughness", [0.0, 1e-6, 1e-4, 4e-4, 1e-3, 1e-2, 0.05])
@pytest.mark.parametrize("reynolds_number", [2300.0, 4000.0, 1e4, 1e5, 1e6, 1e8])
def test_serghide_matches_colebrook_white(
    approximator, relative_roughness, reynolds_number
):
    expected = colebrook_white(relative_roughness, reynolds_number)
    result = approximator.calculate_friction_factor(relative_roughness, reynolds_number)
    assert result == pytest.approx(expected, rel=0.01)


def test_turbulent_friction_factor_decreases_with_reynolds_number(approximator):
    factors = [
        approximator.calculate_friction_factor(1e-4, reynolds_number)
        for reynolds_number in (1e4, 1e5, 1e6)
    ]
    assert factors[0] > factors[1] > factors[2] > 0


@pytest.mark.parametrize("reynolds_number", [1e18, 1e20])
def test_extreme_reynolds_number_reaches_fully_rough_limit(approximator, reynolds_number):
    # Far into the turbulent regime only the roughness term is left
    expected = (-2.0 * math.log10(0.05 / 3.7)) ** -2
    factor = approximator.calculate_friction_factor(0.05, reynolds_number)
    assert factor == pytest.approx(expected, rel=1e-9)


def test_zero_reynolds_number_is_clamped(approximator):
    factor = approximator.calculate_friction_factor(0.001, 0.0)
    assert math.isfinite(factor)
    assert factor == pytest.approx(64.0 / 1e-6)


def test_laminar_limit_can_be_configured():
    approximator = SerghidesApproximation(laminar_limit=4000.0)
    assert approximator.calculate_friction_factor(1e-4, 3000.0) == 64.0 / 3000.0


def test_get_approximator_returns_shared_serghide_instance():
    approximator = get_approximator(ApproximationMethod.SERGHIDE)
    assert isinstance(approximator, SerghidesApproximation)
    assert get_approximator("serghide") is approximator
    assert get_approximator() is approximator


def test_colebrook_method_is_not_implemented():
    with pytest.raises(UnsupportedMethodError):
        get_approximator(ApproximationMethod.COLEBROOK)
    with pytest.raises(NotImplementedError):
        get_approximator("colebrook")


@pytest.mark.parametrize("method", ["swamee-jain", "", None])
def test_unknown_method_has_no_approximator(method):
    with pytest.raises(NoMethodError):
        get_approximator(method)
