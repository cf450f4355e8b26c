import copy
import logging
import math
import operator
import typing

import attrs
from typing_extensions import Self

from syscurve.exceptions import IndexOutOfRangeError, ValidationError
from syscurve.friction import REYNOLDS_FLOOR, FrictionFactorApproximator
from syscurve.types import ApproximationMethod, ElevationBand
from syscurve.units import IMPERIAL, UnitSystem, get_unit_system

if typing.TYPE_CHECKING:
    from syscurve.pipeline.solver import SystemCurve

logger = logging.getLogger(__name__)


__all__ = [
    "FLOW_RATE_FLOOR",
    "SectionHead",
    "PipeSection",
    "Pipeline",
]

FLOW_RATE_FLOOR = 1e-6
"""Smallest flow rate used in head calculations"""

ElevationLike = typing.Union[ElevationBand, float]


@attrs.define(slots=True, frozen=True)
class SectionHead:
    """Head contribution of a pipe section at one flow rate"""

    flow_rate: float = attrs.field()
    """Flow rate the head was computed for (as requested, before clamping)"""
    max_tdh: float = attrs.field()
    """Total dynamic head using the maximum static head"""
    min_tdh: float = attrs.field()
    """Total dynamic head using the minimum static head"""
    static_head_max: float = attrs.field()
    """Highest outlet elevation minus lowest inlet elevation"""
    static_head_min: float = attrs.field()
    """Lowest outlet elevation minus highest inlet elevation"""
    pressure_head: float = attrs.field()
    """Head equivalent of the outlet-inlet pressure difference"""
    velocity_head: float = attrs.field()
    """Kinetic head, zero when inlet and outlet velocities are equal"""
    major_loss: float = attrs.field()
    """Darcy-Weisbach friction loss along the section length"""
    minor_loss: float = attrs.field()
    """Loss through the section's fittings"""
    friction_factor: float = attrs.field()
    """Darcy friction factor used for the major loss"""
    reynolds_number: float = attrs.field()
    """Reynolds number of the flow"""

    @property
    def tdh(self) -> float:
        """Total dynamic head. Equal to `max_tdh` and `min_tdh` when no elevation band is modelled."""
        return self.max_tdh


class PipeSection:
    """
    A straight pipe segment of a series pipeline.

    Holds the geometry, fluid and boundary conditions of the segment and
    computes its head contribution over a range of flow rates. Every change
    to the section re-validates the whole section; invalid changes are
    rolled back.
    """

    def __init__(
        self,
        length: float,
        diameter: float,
        absolute_roughness: float,
        kinematic_viscosity: float,
        target_flow_rate: float,
        k_values: typing.Sequence[float],
        initial_pressure: float = 0.0,
        final_pressure: float = 0.0,
        initial_velocity: float = 0.0,
        final_velocity: float = 0.0,
        initial_elevation: ElevationLike = 0.0,
        final_elevation: ElevationLike = 0.0,
        name: typing.Optional[str] = None,
    ) -> None:
        """
        Initialize a PipeSection.

        All values are plain numbers in the units of the unit system the
        section is evaluated in (see `syscurve.units`).

        :param length: Length of the section
        :param diameter: Internal diameter of the section
        :param absolute_roughness: Absolute roughness of the pipe wall
        :param kinematic_viscosity: Kinematic viscosity of the fluid
        :param target_flow_rate: Flow rate the section's own evaluation range ends at
        :param k_values: Minor loss coefficients of the fittings (appurtenances) in the section
        :param initial_pressure: Pressure at the section inlet
        :param final_pressure: Pressure at the section outlet
        :param initial_velocity: Velocity at the section inlet
        :param final_velocity: Velocity at the section outlet
        :param initial_elevation: Inlet elevation, or an `ElevationBand` of possible inlet elevations
        :param final_elevation: Outlet elevation, or an `ElevationBand` of possible outlet elevations
        :param name: Optional name for the section
        """
        self.name = name or f"PipeSection-{id(self)}"
        self._length = float(length)
        self._diameter = float(diameter)
        self._absolute_roughness = float(absolute_roughness)
        self._kinematic_viscosity = float(kinematic_viscosity)
        self._target_flow_rate = float(target_flow_rate)
        self._k_values = tuple(float(k) for k in k_values)
        self._initial_pressure = float(initial_pressure)
        self._final_pressure = float(final_pressure)
        self._initial_velocity = float(initial_velocity)
        self._final_velocity = float(final_velocity)
        self._initial_elevation = _as_elevation_band(initial_elevation)
        self._final_elevation = _as_elevation_band(final_elevation)
        self._pipeline: typing.Optional[Pipeline] = None
        self._validate()
        self._compute_derived()

    def _validate(self) -> None:
        # Comparisons are written so that NaN fails them
        if not _is_positive(self._diameter):
            raise ValidationError("Pipe diameter must be greater than zero.")
        if not _is_positive(self._length):
            raise ValidationError("Pipe length must be greater than zero.")
        if not _is_non_negative(self._absolute_roughness):
            raise ValidationError("Absolute roughness must be non-negative.")
        if not _is_positive(self._kinematic_viscosity):
            raise ValidationError("Kinematic viscosity must be greater than zero.")
        if not _is_positive(self._target_flow_rate):
            raise ValidationError("Target flow rate must be greater than zero.")
        if not self._k_values:
            raise ValidationError("Appurtenance K values must not be empty.")
        if not all(_is_non_negative(k) for k in self._k_values):
            raise ValidationError("Appurtenance K values must be non-negative.")
        for field in (
            "initial_pressure",
            "final_pressure",
            "initial_velocity",
            "final_velocity",
        ):
            if not math.isfinite(getattr(self, f"_{field}")):
                raise ValidationError(f"{field.replace('_', ' ').capitalize()} must be finite.")

        z1, z2 = self._initial_elevation, self._final_elevation
        if not all(
            math.isfinite(value)
            for value in (z1.minimum, z1.maximum, z2.minimum, z2.maximum)
        ):
            raise ValidationError(
                f"Elevations of pipe section {self.name!r} must be finite."
            )
        if z2.maximum < z1.minimum or z2.minimum < z1.maximum:
            raise ValidationError(
                f"Elevation bands of pipe section {self.name!r} are invalid: "
                f"final elevation {z2} must not fall below initial elevation {z1}."
            )

    def _compute_derived(self) -> None:
        self._hydraulic_area = math.pi * self._diameter**2 / 4.0
        self._relative_roughness = self._absolute_roughness / self._diameter
        self._k_sum = math.fsum(self._k_values)

    def update(self, **params: typing.Any) -> Self:
        """
        Change one or more section parameters at once.

        The whole section is validated after applying all changes. If the
        resulting section is invalid, none of the changes are kept.

        :param params: Any of the parameters accepted by `PipeSection.__init__`, except `name`
        :return: self for method chaining
        """
        unknown = set(params) - set(_MUTABLE_FIELDS)
        if unknown:
            raise TypeError(
                f"Unknown pipe section parameter(s): {', '.join(sorted(unknown))}"
            )

        # Convert everything first so a bad value leaves the section untouched
        converted = {
            field: _MUTABLE_FIELDS[field](value) for field, value in params.items()
        }
        previous = {field: getattr(self, f"_{field}") for field in converted}
        for field, value in converted.items():
            setattr(self, f"_{field}", value)
        try:
            self._validate()
        except ValidationError:
            for field, value in previous.items():
                setattr(self, f"_{field}", value)
            raise

        self._compute_derived()
        logger.debug(f"Updated pipe section {self.name!r}: {sorted(params)}")
        return self

    @property
    def length(self) -> float:
        return self._length

    @length.setter
    def length(self, value: float) -> None:
        self.update(length=value)

    @property
    def diameter(self) -> float:
        return self._diameter

    @diameter.setter
    def diameter(self, value: float) -> None:
        self.update(diameter=value)

    @property
    def absolute_roughness(self) -> float:
        return self._absolute_roughness

    @absolute_roughness.setter
    def absolute_roughness(self, value: float) -> None:
        self.update(absolute_roughness=value)

    @property
    def kinematic_viscosity(self) -> float:
        return self._kinematic_viscosity

    @kinematic_viscosity.setter
    def kinematic_viscosity(self, value: float) -> None:
        self.update(kinematic_viscosity=value)

    @property
    def target_flow_rate(self) -> float:
        return self._target_flow_rate

    @target_flow_rate.setter
    def target_flow_rate(self, value: float) -> None:
        self.update(target_flow_rate=value)

    @property
    def k_values(self) -> typing.Tuple[float, ...]:
        """Minor loss coefficients of the section's fittings."""
        return self._k_values

    @k_values.setter
    def k_values(self, value: typing.Sequence[float]) -> None:
        self.update(k_values=value)

    @property
    def initial_pressure(self) -> float:
        return self._initial_pressure

    @initial_pressure.setter
    def initial_pressure(self, value: float) -> None:
        self.update(initial_pressure=value)

    @property
    def final_pressure(self) -> float:
        return self._final_pressure

    @final_pressure.setter
    def final_pressure(self, value: float) -> None:
        self.update(final_pressure=value)

    @property
    def initial_velocity(self) -> float:
        return self._initial_velocity

    @initial_velocity.setter
    def initial_velocity(self, value: float) -> None:
        self.update(initial_velocity=value)

    @property
    def final_velocity(self) -> float:
        return self._final_velocity

    @final_velocity.setter
    def final_velocity(self, value: float) -> None:
        self.update(final_velocity=value)

    @property
    def initial_elevation(self) -> ElevationBand:
        return self._initial_elevation

    @initial_elevation.setter
    def initial_elevation(self, value: ElevationLike) -> None:
        self.update(initial_elevation=value)

    @property
    def final_elevation(self) -> ElevationBand:
        return self._final_elevation

    @final_elevation.setter
    def final_elevation(self, value: ElevationLike) -> None:
        self.update(final_elevation=value)

    @property
    def hydraulic_area(self) -> float:
        """Internal cross-sectional area of the section."""
        return self._hydraulic_area

    @property
    def relative_roughness(self) -> float:
        """Absolute roughness divided by internal diameter."""
        return self._relative_roughness

    @property
    def has_velocity_head(self) -> bool:
        """Whether inlet and outlet velocities differ."""
        return self._final_velocity != self._initial_velocity

    @property
    def has_elevation_band(self) -> bool:
        """Whether either endpoint elevation is an uncertainty band."""
        return self._initial_elevation.is_range or self._final_elevation.is_range

    @property
    def pipeline(self) -> typing.Optional["Pipeline"]:
        """The pipeline owning this section, if any."""
        return self._pipeline

    def reynolds_number(self, flow_rate: float) -> float:
        """
        Reynolds number of the flow in the section.

        :param flow_rate: Volumetric flow rate
        :return: Reynolds number, never below `REYNOLDS_FLOOR`
        """
        velocity = flow_rate / self._hydraulic_area
        return max(velocity * (self._diameter / self._kinematic_viscosity), REYNOLDS_FLOOR)

    def compute_head(
        self,
        approximator: FrictionFactorApproximator,
        flow_rate: float,
        unit_system: typing.Union[UnitSystem, str] = IMPERIAL,
        flow_rate_floor: float = FLOW_RATE_FLOOR,
    ) -> SectionHead:
        """
        Compute the head contribution of the section at a single flow rate.

        :param approximator: Friction factor approximator for the major losses
        :param flow_rate: Volumetric flow rate
        :param unit_system: Unit system the section's values are expressed in
        :param flow_rate_floor: Smallest flow rate used in the calculation
        :return: `SectionHead` with the total and the individual head terms
        """
        unit_system = get_unit_system(unit_system)
        gravity = unit_system.gravity
        adjusted_flow_rate = max(flow_rate, flow_rate_floor)

        # Q² / (2g·A²), i.e. v²/2g
        kinetic_head = adjusted_flow_rate**2 / (2.0 * gravity * self._hydraulic_area**2)

        static_head_max = self._final_elevation.maximum - self._initial_elevation.minimum
        static_head_min = self._final_elevation.minimum - self._initial_elevation.maximum
        pressure_head = (
            self._final_pressure - self._initial_pressure
        ) * unit_system.pressure_head_factor
        velocity_head = kinetic_head if self.has_velocity_head else 0.0

        reynolds_number = self.reynolds_number(adjusted_flow_rate)
        friction_factor = approximator.calculate_friction_factor(
            self._relative_roughness, reynolds_number
        )
        major_loss = friction_factor * (self._length / self._diameter) * kinetic_head
        minor_loss = self._k_sum * kinetic_head

        dynamic_head = pressure_head + velocity_head + major_loss + minor_loss
        return SectionHead(
            flow_rate=flow_rate,
            max_tdh=static_head_max + dynamic_head,
            min_tdh=static_head_min + dynamic_head,
            static_head_max=static_head_max,
            static_head_min=static_head_min,
            pressure_head=pressure_head,
            velocity_head=velocity_head,
            major_loss=major_loss,
            minor_loss=minor_loss,
            friction_factor=friction_factor,
            reynolds_number=reynolds_number,
        )

    def evaluate(
        self,
        approximator: FrictionFactorApproximator,
        flow_rates: typing.Iterable[float],
        unit_system: typing.Union[UnitSystem, str] = IMPERIAL,
        flow_rate_floor: float = FLOW_RATE_FLOOR,
    ) -> typing.List[SectionHead]:
        """
        Compute the head contribution of the section at each flow rate.

        :param approximator: Friction factor approximator for the major losses
        :param flow_rates: Volumetric flow rates
        :param unit_system: Unit system the section's values are expressed in
        :param flow_rate_floor: Smallest flow rate used in the calculation
        :return: One `SectionHead` per flow rate, in the same order
        """
        unit_system = get_unit_system(unit_system)
        return [
            self.compute_head(approximator, flow_rate, unit_system, flow_rate_floor)
            for flow_rate in flow_rates
        ]

    def flow_range(self, samples: int = 20) -> typing.List[float]:
        """Evenly spaced flow rates ending at the section's target flow rate."""
        from syscurve.pipeline.solver import generate_flow_range

        return generate_flow_range(self._target_flow_rate, samples)

    def execute(
        self,
        approximator: FrictionFactorApproximator,
        unit_system: typing.Union[UnitSystem, str] = IMPERIAL,
        samples: int = 20,
    ) -> typing.List[SectionHead]:
        """Evaluate the section on its own flow range."""
        return self.evaluate(approximator, self.flow_range(samples), unit_system)

    def copy(self) -> Self:
        """
        Copy of the section that does not belong to any pipeline.
        """
        new_section = copy.copy(self)
        new_section._pipeline = None
        new_section.name = f"{self.name}-copy"
        return new_section

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name!r}, length={self._length}, "
            f"diameter={self._diameter}, absolute_roughness={self._absolute_roughness}, "
            f"k_values={list(self._k_values)})"
        )


def _is_positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def _is_non_negative(value: float) -> bool:
    return math.isfinite(value) and value >= 0


def _as_elevation_band(value: ElevationLike) -> ElevationBand:
    if isinstance(value, ElevationBand):
        return value
    return ElevationBand.point(value)


_MUTABLE_FIELDS: typing.Dict[str, typing.Callable[[typing.Any], typing.Any]] = {
    "length": float,
    "diameter": float,
    "absolute_roughness": float,
    "kinematic_viscosity": float,
    "target_flow_rate": float,
    "k_values": lambda values: tuple(float(k) for k in values),
    "initial_pressure": float,
    "final_pressure": float,
    "initial_velocity": float,
    "final_velocity": float,
    "initial_elevation": _as_elevation_band,
    "final_elevation": _as_elevation_band,
}

SectionLike = typing.Union[PipeSection, typing.Mapping[str, typing.Any]]


class Pipeline:
    """
    Pipeline made of pipe sections connected in series.

    Sections are kept in insertion order, which is their physical order
    along the pipeline. Every section sees the same flow rate, so the system
    curve is the per-flow-rate sum of the sections' heads.

    Not safe for concurrent mutation. Evaluate a `copy.deepcopy` snapshot when
    sharing a pipeline across threads.
    """

    def __init__(
        self,
        sections: typing.Optional[typing.Sequence[SectionLike]] = None,
        name: typing.Optional[str] = None,
    ) -> None:
        """
        Initialize a Pipeline.

        :param sections: Optional sequence of `PipeSection`s (or their parameters) in series order
        :param name: Optional name for the pipeline
        """
        self.name = name or f"Pipeline-{id(self)}"
        self._sections: typing.List[PipeSection] = []

        from syscurve.pipeline.solver import SystemCurveSolver

        self._solver = SystemCurveSolver(self)

        try:
            for section in sections or []:
                self.add(section)
        except Exception:
            # Release the sections claimed before the failure
            for section in self._sections:
                section._pipeline = None
            self._sections.clear()
            raise

    @property
    def sections(self) -> typing.List[PipeSection]:
        return self._sections.copy()

    @property
    def total_length(self) -> float:
        """Sum of the section lengths."""
        return math.fsum(section.length for section in self._sections)

    @property
    def has_elevation_band(self) -> bool:
        """Whether any section models an elevation band."""
        return any(section.has_elevation_band for section in self._sections)

    def _own(self, section: SectionLike) -> PipeSection:
        if not isinstance(section, PipeSection):
            section = PipeSection(**section)

        owner = section._pipeline
        if owner is not None and owner is not self:
            raise ValidationError(
                f"Pipe section {section.name!r} already belongs to pipeline {owner.name!r}."
            )
        if any(existing is section for existing in self._sections):
            raise ValidationError(
                f"Pipe section {section.name!r} is already part of pipeline {self.name!r}."
            )
        section._pipeline = self
        return section

    def _check_index(self, index: int) -> int:
        message = (
            f"Invalid pipe section index {index!r} for pipeline {self.name!r} "
            f"with {len(self._sections)} section(s)."
        )
        if isinstance(index, bool):
            raise IndexOutOfRangeError(message)
        try:
            index = operator.index(index)
        except TypeError as exc:
            raise IndexOutOfRangeError(message) from exc
        if index < 0 or index >= len(self._sections):
            raise IndexOutOfRangeError(message)
        return index

    def add(self, section: SectionLike) -> Self:
        """
        Append a pipe section to the downstream end of the pipeline.

        :param section: `PipeSection` instance, or a mapping of `PipeSection` parameters
        :return: self for method chaining
        """
        section = self._own(section)
        self._sections.append(section)
        logger.debug(f"Added pipe section {section.name!r} to pipeline {self.name!r}")
        return self

    def add_section(self, **params: typing.Any) -> PipeSection:
        """
        Create a pipe section from parameters and append it.

        :param params: Parameters accepted by `PipeSection.__init__`
        :return: The new pipe section
        """
        section = PipeSection(**params)
        self.add(section)
        return section

    def remove_at(self, index: int) -> PipeSection:
        """
        Remove the pipe section at `index`.

        Negative indices are not supported.

        :param index: Position of the section in the pipeline
        :return: The removed section, no longer owned by the pipeline
        """
        index = self._check_index(index)
        section = self._sections.pop(index)
        section._pipeline = None
        logger.debug(f"Removed pipe section {section.name!r} from pipeline {self.name!r}")
        return section

    def replace_at(self, index: int, section: SectionLike) -> PipeSection:
        """
        Replace the pipe section at `index`.

        :param index: Position of the section in the pipeline
        :param section: `PipeSection` instance, or a mapping of `PipeSection` parameters
        :return: The section that was replaced
        """
        index = self._check_index(index)
        previous = self._sections[index]
        if section is previous:
            return previous

        section = self._own(section)
        self._sections[index] = section
        previous._pipeline = None
        logger.debug(
            f"Replaced pipe section {previous.name!r} with {section.name!r} "
            f"in pipeline {self.name!r}"
        )
        return previous

    def list(self) -> typing.List[PipeSection]:
        """Pipe sections in series order."""
        return self.sections

    def evaluate(
        self,
        target_flow_rate: float,
        approximation_method: typing.Union[
            ApproximationMethod, str
        ] = ApproximationMethod.SERGHIDE,
        unit_system: typing.Union[UnitSystem, str] = IMPERIAL,
        samples: int = 20,
    ) -> "SystemCurve":
        """
        Compute the system curve of the pipeline.

        :param target_flow_rate: Flow rate the curve ends at
        :param approximation_method: Friction factor approximation method
        :param unit_system: Unit system the sections' values are expressed in
        :param samples: Number of flow rates on the curve
        :return: `SystemCurve` with one point per flow rate
        """
        return self._solver.solve(
            target_flow_rate,
            approximation_method=approximation_method,
            unit_system=unit_system,
            samples=samples,
        )

    def section_curves(
        self,
        target_flow_rate: float,
        approximation_method: typing.Union[
            ApproximationMethod, str
        ] = ApproximationMethod.SERGHIDE,
        unit_system: typing.Union[UnitSystem, str] = IMPERIAL,
        samples: int = 20,
    ) -> typing.List[typing.List[SectionHead]]:
        """Head contributions of every section over the pipeline's flow range."""
        return self._solver.section_heads(
            target_flow_rate,
            approximation_method=approximation_method,
            unit_system=unit_system,
            samples=samples,
        )

    def __len__(self) -> int:
        return len(self._sections)

    def __iter__(self) -> typing.Iterator[PipeSection]:
        """Iterate over the pipe sections in the pipeline."""
        return iter(self._sections)

    def __getitem__(self, index: int) -> PipeSection:
        """Get a pipe section by index."""
        return self._sections[index]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, sections={len(self._sections)})"
