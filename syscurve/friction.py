"""
Darcy friction factor approximations.
"""

import logging
import math
import typing

from syscurve.exceptions import NoMethodError, UnsupportedMethodError
from syscurve.types import ApproximationMethod

logger = logging.getLogger(__name__)

__all__ = [
    "LAMINAR_REYNOLDS_LIMIT",
    "REYNOLDS_FLOOR",
    "FrictionFactorApproximator",
    "SerghidesApproximation",
    "get_approximator",
]

LAMINAR_REYNOLDS_LIMIT = 2300.0
"""Reynolds number below which flow is treated as laminar"""
REYNOLDS_FLOOR = 1e-6
"""Smallest Reynolds number used, so zero flow never divides by zero"""


class FrictionFactorApproximator(typing.Protocol):
    """Strategy computing the Darcy friction factor of a pipe"""

    def calculate_friction_factor(
        self, relative_roughness: float, reynolds_number: float
    ) -> float:
        """
        Compute the Darcy friction factor.

        :param relative_roughness: Absolute roughness divided by internal diameter
        :param reynolds_number: Reynolds number of the flow
        :return: Darcy friction factor
        """
        ...


class SerghidesApproximation:
    """
    Serghide's explicit solution of the Colebrook-White equation.

    Three successive fixed-point estimates of `1/sqrt(f)` are combined with
    Steffensen's acceleration, which reproduces the Colebrook-White root to
    engineering accuracy without iterating. Laminar flow (Re < 2300) bypasses
    the approximation and uses Hagen-Poiseuille, f = 64/Re.
    """

    __slots__ = ("laminar_limit", "reynolds_floor")

    def __init__(
        self,
        laminar_limit: float = LAMINAR_REYNOLDS_LIMIT,
        reynolds_floor: float = REYNOLDS_FLOOR,
    ) -> None:
        self.laminar_limit = laminar_limit
        self.reynolds_floor = reynolds_floor

    def calculate_friction_factor(
        self, relative_roughness: float, reynolds_number: float
    ) -> float:
        reynolds_number = max(reynolds_number, self.reynolds_floor)
        if reynolds_number < self.laminar_limit:
            return 64.0 / reynolds_number

        roughness_term = relative_roughness / 3.7
        a = -2.0 * math.log10(roughness_term + 12.0 / reynolds_number)
        b = -2.0 * math.log10(roughness_term + 2.51 * a / reynolds_number)
        c = -2.0 * math.log10(roughness_term + 2.51 * b / reynolds_number)
        denominator = c - 2.0 * b + a
        if denominator == 0.0:
            # The estimates have converged
            return a**-2
        return (a - (b - a) ** 2 / denominator) ** -2

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(laminar_limit={self.laminar_limit})"


# `None` marks a recognised method without an implementation
_APPROXIMATORS: typing.Dict[
    ApproximationMethod, typing.Optional[FrictionFactorApproximator]
] = {
    ApproximationMethod.SERGHIDE: SerghidesApproximation(),
    ApproximationMethod.COLEBROOK: None,
}


def get_approximator(
    method: typing.Union[ApproximationMethod, str] = ApproximationMethod.SERGHIDE,
) -> FrictionFactorApproximator:
    """
    Resolve the shared approximator instance for a friction factor method.

    :param method: `ApproximationMethod` member or its value, e.g. "serghide"
    :return: Stateless approximator for the method
    :raises UnsupportedMethodError: If the method is recognised but not implemented
    :raises NoMethodError: If no approximator exists for the method
    """
    try:
        method = ApproximationMethod(method)
    except ValueError as exc:
        raise NoMethodError(
            f"No friction factor approximation method named {method!r}"
        ) from exc

    if method not in _APPROXIMATORS:
        raise NoMethodError(f"No friction factor approximation defined for {method}")

    approximator = _APPROXIMATORS[method]
    if approximator is None:
        raise UnsupportedMethodError(
            f"The {method} friction factor method is not implemented"
        )
    logger.debug(f"Resolved {method} friction factor approximator")
    return approximator
