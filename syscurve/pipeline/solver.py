"""
Pipeline System Curve Solver
"""

import logging
import typing

import attrs
import numpy as np

from syscurve.exceptions import EmptyPipelineError, ValidationError
from syscurve.friction import get_approximator
from syscurve.pipeline.core import FLOW_RATE_FLOOR, Pipeline, SectionHead
from syscurve.types import ApproximationMethod
from syscurve.units import IMPERIAL, UnitSystem, get_unit_system

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_SAMPLES",
    "generate_flow_range",
    "CurvePoint",
    "SystemCurve",
    "SystemCurveSolver",
]

DEFAULT_SAMPLES = 20
"""Number of flow rates on a system curve"""


def generate_flow_range(
    target_flow_rate: float, samples: int = DEFAULT_SAMPLES
) -> typing.List[float]:
    """
    Evenly spaced flow rates ending at the target flow rate.

    `flow_rate[i] = (target_flow_rate / samples) * (i + 1)`, so the first
    sample is one step above zero and the last one is the target itself.

    :param target_flow_rate: Largest flow rate of the range
    :param samples: Number of flow rates to generate
    :return: Strictly increasing list of flow rates
    """
    if target_flow_rate <= 0:
        raise ValidationError("Target flow rate must be greater than zero.")
    if samples < 1:
        raise ValidationError("At least one flow rate sample is required.")

    step = target_flow_rate / samples
    flow_rates = step * np.arange(1, samples + 1, dtype=float)
    flow_rates[-1] = target_flow_rate
    return flow_rates.tolist()


@attrs.define(slots=True, frozen=True)
class CurvePoint:
    """A point on the system curve"""

    max_tdh: float = attrs.field()
    """Summed total dynamic head using each section's maximum static head"""
    min_tdh: float = attrs.field()
    """Summed total dynamic head using each section's minimum static head"""
    flow_rate: float = attrs.field()
    """Flow rate through every section of the pipeline"""

    @property
    def tdh(self) -> float:
        """Total dynamic head. Equal to `max_tdh` and `min_tdh` when no elevation band is modelled."""
        return self.max_tdh


@attrs.define(slots=True, frozen=True)
class SystemCurve:
    """
    Total dynamic head of a pipeline as a function of flow rate.

    Points are ordered by flow rate, index-aligned with the generated flow range.
    """

    points: typing.Tuple[CurvePoint, ...] = attrs.field(converter=tuple)
    """Points of the curve, in increasing flow rate order"""
    is_banded: bool = attrs.field(default=False)
    """Whether any section modelled an elevation band, so `max_tdh` and `min_tdh` differ"""
    unit_system_name: str = attrs.field(default=IMPERIAL.name)
    """Name of the unit system the curve is expressed in"""

    @property
    def flow_rates(self) -> typing.List[float]:
        return [point.flow_rate for point in self.points]

    @property
    def max_tdh(self) -> typing.List[float]:
        return [point.max_tdh for point in self.points]

    @property
    def min_tdh(self) -> typing.List[float]:
        return [point.min_tdh for point in self.points]

    @property
    def tdh(self) -> typing.List[float]:
        return [point.tdh for point in self.points]

    def as_tuples(self) -> typing.List[typing.Tuple[float, ...]]:
        """
        The curve as plain tuples.

        `(max_tdh, min_tdh, flow_rate)` when the curve is banded, otherwise
        `(tdh, flow_rate)`.
        """
        if self.is_banded:
            return [
                (point.max_tdh, point.min_tdh, point.flow_rate) for point in self.points
            ]
        return [(point.tdh, point.flow_rate) for point in self.points]

    def to_array(self) -> np.ndarray:
        """The curve as an `(n, 3)` array of `max_tdh, min_tdh, flow_rate` rows."""
        return np.array(
            [(point.max_tdh, point.min_tdh, point.flow_rate) for point in self.points],
            dtype=float,
        ).reshape(-1, 3)

    def head_at(self, flow_rate: float) -> typing.Tuple[float, float]:
        """
        Linearly interpolate the curve at a flow rate.

        :param flow_rate: Flow rate within the range covered by the curve
        :return: Tuple of (max_tdh, min_tdh) at the flow rate
        """
        if not self.points:
            raise ValidationError("Cannot interpolate an empty system curve.")

        flow_rates = self.flow_rates
        if not (flow_rates[0] <= flow_rate <= flow_rates[-1]):
            raise ValidationError(
                f"Flow rate {flow_rate} is outside the curve range "
                f"[{flow_rates[0]}, {flow_rates[-1]}]."
            )
        max_tdh = float(np.interp(flow_rate, flow_rates, self.max_tdh))
        min_tdh = float(np.interp(flow_rate, flow_rates, self.min_tdh))
        return max_tdh, min_tdh

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> typing.Iterator[CurvePoint]:
        return iter(self.points)

    def __getitem__(self, index: int) -> CurvePoint:
        return self.points[index]


class SystemCurveSolver:
    """
    Computes the system curve of a series pipeline.

    Under the series-pipe assumption every section carries the same flow
    rate, so the pipeline generates one flow range, each section evaluates
    its head over that range, and the heads are summed index by index.
    """

    def __init__(self, pipeline: Pipeline, flow_rate_floor: float = FLOW_RATE_FLOOR):
        """
        Initialize the solver.

        :param pipeline: Pipeline object to solve
        :param flow_rate_floor: Smallest flow rate used in head calculations
        """
        self.pipeline = pipeline
        self.flow_rate_floor = flow_rate_floor

    def section_heads(
        self,
        target_flow_rate: float,
        approximation_method: typing.Union[
            ApproximationMethod, str
        ] = ApproximationMethod.SERGHIDE,
        unit_system: typing.Union[UnitSystem, str] = IMPERIAL,
        samples: int = DEFAULT_SAMPLES,
    ) -> typing.List[typing.List[SectionHead]]:
        """
        Evaluate every section of the pipeline over the shared flow range.

        :param target_flow_rate: Flow rate the range ends at
        :param approximation_method: Friction factor approximation method
        :param unit_system: Unit system the sections' values are expressed in
        :param samples: Number of flow rates in the range
        :return: Per-section lists of `SectionHead`, in pipeline order
        """
        if len(self.pipeline) == 0:
            raise EmptyPipelineError(
                f"Pipeline {self.pipeline.name!r} has no pipe sections."
            )

        approximator = get_approximator(approximation_method)
        unit_system = get_unit_system(unit_system)
        flow_rates = generate_flow_range(target_flow_rate, samples)
        return [
            section.evaluate(
                approximator,
                flow_rates,
                unit_system,
                flow_rate_floor=self.flow_rate_floor,
            )
            for section in self.pipeline
        ]

    def solve(
        self,
        target_flow_rate: float,
        approximation_method: typing.Union[
            ApproximationMethod, str
        ] = ApproximationMethod.SERGHIDE,
        unit_system: typing.Union[UnitSystem, str] = IMPERIAL,
        samples: int = DEFAULT_SAMPLES,
    ) -> SystemCurve:
        """
        Compute the system curve of the pipeline.

        :param target_flow_rate: Flow rate the curve ends at
        :param approximation_method: Friction factor approximation method
        :param unit_system: Unit system the sections' values are expressed in
        :param samples: Number of flow rates on the curve
        :return: `SystemCurve` index-aligned with the generated flow range
        """
        unit_system = get_unit_system(unit_system)
        section_heads = self.section_heads(
            target_flow_rate,
            approximation_method=approximation_method,
            unit_system=unit_system,
            samples=samples,
        )

        # rows: sections, columns: flow rate samples
        max_tdh = np.array(
            [[head.max_tdh for head in heads] for heads in section_heads], dtype=float
        ).sum(axis=0)
        min_tdh = np.array(
            [[head.min_tdh for head in heads] for heads in section_heads], dtype=float
        ).sum(axis=0)
        flow_rates = [head.flow_rate for head in section_heads[0]]

        curve = SystemCurve(
            points=[
                CurvePoint(max_tdh=float(max_), min_tdh=float(min_), flow_rate=flow_rate)
                for max_, min_, flow_rate in zip(max_tdh, min_tdh, flow_rates)
            ],
            is_banded=self.pipeline.has_elevation_band,
            unit_system_name=unit_system.name,
        )
        logger.debug(
            f"Solved system curve for pipeline {self.pipeline.name!r}: "
            f"{len(self.pipeline)} section(s), {len(curve)} point(s), "
            f"TDH {curve.points[0].max_tdh:.4g} to {curve.points[-1].max_tdh:.4g} "
            f"{unit_system['head']}"
        )
        return curve
