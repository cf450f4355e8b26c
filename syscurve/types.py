import enum
import typing
import attrs
import cattrs
from pint.facets.plain import PlainQuantity

from syscurve.exceptions import ValidationError
from syscurve.units import (
    IMPERIAL,
    Quantity,
    UnitSystem,
    get_unit_system,
    to_magnitude,
)

if typing.TYPE_CHECKING:
    from syscurve.pipeline.core import PipeSection, Pipeline

__all__ = [
    "ApproximationMethod",
    "UnitSystemName",
    "ElevationBand",
    "PipeSectionConfig",
    "PipelineConfig",
    "converter",
]


class ApproximationMethod(str, enum.Enum):
    """Enumeration of friction factor approximation methods."""

    SERGHIDE = "serghide"
    """Serghide's explicit solution of the Colebrook-White equation"""
    COLEBROOK = "colebrook"
    """Iterative Colebrook-White root finding (not implemented)"""

    def __str__(self) -> str:
        return self.value


class UnitSystemName(str, enum.Enum):
    """Enumeration of the built-in unit systems."""

    IMPERIAL = "imperial"
    METRIC = "metric"

    def __str__(self) -> str:
        return self.value


def _elevation_band_converter(value: typing.Any) -> "ElevationBand":
    if isinstance(value, ElevationBand):
        return value
    return ElevationBand.point(value)


@attrs.define(slots=True, frozen=True)
class ElevationBand:
    """
    Elevation of a pipe endpoint, as an uncertainty band.

    A single known elevation is the degenerate band where `minimum == maximum`.
    """

    minimum: float = attrs.field(converter=float)
    """Lowest possible elevation"""
    maximum: float = attrs.field(converter=float)
    """Highest possible elevation"""

    def __attrs_post_init__(self):
        if self.minimum > self.maximum:
            raise ValidationError(
                f"Elevation band minimum ({self.minimum}) cannot exceed maximum ({self.maximum})."
            )

    @classmethod
    def point(cls, elevation: float) -> "ElevationBand":
        """Band for a single known elevation."""
        return cls(elevation, elevation)

    @property
    def is_range(self) -> bool:
        """Whether the band models an uncertain elevation rather than a single value."""
        return self.minimum != self.maximum

    def __str__(self) -> str:
        if self.is_range:
            return f"{self.minimum}..{self.maximum}"
        return str(self.minimum)


QuantityLike = typing.Union[PlainQuantity, float, int]


@attrs.define(slots=True, frozen=True)
class PipeSectionConfig:
    """Parameter record for a single pipe section."""

    length: QuantityLike
    """Length of the section"""
    diameter: QuantityLike
    """Internal diameter of the section"""
    target_flow_rate: QuantityLike
    """Flow rate the section's own evaluation range ends at"""
    k_values: typing.List[float] = attrs.field(factory=lambda: [0.0])
    """Minor loss coefficients of the section's fittings"""
    absolute_roughness: QuantityLike = 0.0
    """Absolute roughness of the pipe wall"""
    kinematic_viscosity: typing.Optional[QuantityLike] = None
    """Kinematic viscosity of the fluid. Defaults to the unit system's water value"""
    initial_pressure: QuantityLike = 0.0
    """Pressure at the section inlet"""
    final_pressure: QuantityLike = 0.0
    """Pressure at the section outlet"""
    initial_velocity: QuantityLike = 0.0
    """Velocity at the section inlet"""
    final_velocity: QuantityLike = 0.0
    """Velocity at the section outlet"""
    initial_elevation: ElevationBand = attrs.field(
        default=ElevationBand(0.0, 0.0), converter=_elevation_band_converter
    )
    """Elevation (band) of the section inlet"""
    final_elevation: ElevationBand = attrs.field(
        default=ElevationBand(0.0, 0.0), converter=_elevation_band_converter
    )
    """Elevation (band) of the section outlet"""
    name: typing.Optional[str] = None
    """Optional name for the section"""

    def build(self, unit_system: UnitSystem = IMPERIAL) -> "PipeSection":
        """
        Build a validated `PipeSection` from this record.

        Pint quantities are converted into `unit_system`'s units; plain numbers
        are taken to already be expressed in them.

        :param unit_system: Unit system the section will be evaluated in
        :return: A new `PipeSection`
        """
        from syscurve.pipeline.core import PipeSection

        kinematic_viscosity = self.kinematic_viscosity
        if kinematic_viscosity is None:
            kinematic_viscosity = unit_system["kinematic_viscosity"].default
            if kinematic_viscosity is None:
                raise ValidationError(
                    f"Kinematic viscosity is required for unit system {unit_system.name!r}."
                )

        return PipeSection(
            length=to_magnitude(self.length, "length", unit_system),
            diameter=to_magnitude(self.diameter, "diameter", unit_system),
            absolute_roughness=to_magnitude(
                self.absolute_roughness, "roughness", unit_system
            ),
            kinematic_viscosity=to_magnitude(
                kinematic_viscosity, "kinematic_viscosity", unit_system
            ),
            target_flow_rate=to_magnitude(
                self.target_flow_rate, "flow_rate", unit_system
            ),
            k_values=list(self.k_values),
            initial_pressure=to_magnitude(
                self.initial_pressure, "pressure", unit_system
            ),
            final_pressure=to_magnitude(self.final_pressure, "pressure", unit_system),
            initial_velocity=to_magnitude(
                self.initial_velocity, "velocity", unit_system
            ),
            final_velocity=to_magnitude(self.final_velocity, "velocity", unit_system),
            initial_elevation=self.initial_elevation,
            final_elevation=self.final_elevation,
            name=self.name,
        )


@attrs.define(slots=True, frozen=True)
class PipelineConfig:
    """Pipeline-level configuration"""

    name: str = "System"
    """Name of the pipeline"""
    target_flow_rate: QuantityLike = 10.0
    """Flow rate the system curve ends at"""
    approximation_method: ApproximationMethod = ApproximationMethod.SERGHIDE
    """Friction factor approximation method"""
    unit_system_name: UnitSystemName = UnitSystemName.IMPERIAL
    """Unit system the pipeline is evaluated in"""
    sections: typing.List[PipeSectionConfig] = attrs.field(factory=list)
    """Pipe sections, in series order"""

    @property
    def unit_system(self) -> UnitSystem:
        return get_unit_system(self.unit_system_name)

    def build(self) -> "Pipeline":
        """Build a `Pipeline` holding a `PipeSection` for every configured section."""
        from syscurve.pipeline.core import Pipeline

        unit_system = self.unit_system
        return Pipeline(
            [section.build(unit_system) for section in self.sections],
            name=self.name,
        )

    def get_target_flow_rate(self) -> float:
        """Target flow rate as a number in the configured unit system."""
        return to_magnitude(self.target_flow_rate, "flow_rate", self.unit_system)


def structure_quantity(obj: typing.Any, _) -> PlainQuantity:
    """Convert a dict with 'magnitude' and 'units' to a Pint Quantity."""
    if isinstance(obj, PlainQuantity):
        return Quantity(obj.magnitude, obj.units)
    if isinstance(obj, dict) and "magnitude" in obj and "units" in obj:
        return Quantity(obj["magnitude"], obj["units"])
    raise ValueError(f"Cannot structure {obj} as PlainQuantity")


def unstructure_quantity(obj: PlainQuantity) -> dict:
    """Convert a Pint Quantity to a dict with 'magnitude' and 'units'."""
    return {"magnitude": obj.magnitude, "units": str(obj.units)}


def structure_quantity_like(obj: typing.Any, _) -> QuantityLike:
    """Structure either a plain number or a serialized Pint Quantity."""
    if isinstance(obj, bool):
        raise ValueError(f"Cannot structure {obj!r} as a quantity")
    if isinstance(obj, (int, float)):
        return float(obj)
    return structure_quantity(obj, PlainQuantity)


def structure_optional_quantity_like(
    obj: typing.Any, _
) -> typing.Optional[QuantityLike]:
    if obj is None:
        return None
    return structure_quantity_like(obj, QuantityLike)


def structure_elevation_band(
    obj: typing.Any, _: typing.Type[ElevationBand]
) -> ElevationBand:
    """Convert a number or a dict with 'minimum' and 'maximum' to an ElevationBand."""
    if isinstance(obj, ElevationBand):
        return obj
    if isinstance(obj, dict) and "minimum" in obj and "maximum" in obj:
        return ElevationBand(obj["minimum"], obj["maximum"])
    if isinstance(obj, (int, float)) and not isinstance(obj, bool):
        return ElevationBand.point(obj)
    raise ValueError(f"Cannot structure {obj} as ElevationBand")


def unstructure_elevation_band(obj: ElevationBand) -> typing.Any:
    """Convert an ElevationBand to a number, or a dict when it is a range."""
    if obj.is_range:
        return {"minimum": obj.minimum, "maximum": obj.maximum}
    return obj.minimum


converter = cattrs.Converter()
converter.register_structure_hook(PlainQuantity, structure_quantity)
converter.register_unstructure_hook(PlainQuantity, unstructure_quantity)
converter.register_structure_hook_func(
    lambda t: t == QuantityLike, structure_quantity_like
)
converter.register_structure_hook_func(
    lambda t: t == typing.Optional[QuantityLike], structure_optional_quantity_like
)
converter.register_structure_hook(ElevationBand, structure_elevation_band)
converter.register_unstructure_hook(ElevationBand, unstructure_elevation_band)
