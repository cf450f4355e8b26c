import typing
from pint import UnitRegistry
from pint.facets.plain import PlainQuantity
from collections import defaultdict
import attrs

from syscurve.exceptions import ValidationError

__all__ = [
    "QuantityUnit",
    "UnitSystem",
    "IMPERIAL",
    "METRIC",
    "SI",
    "ureg",
    "Quantity",
    "Unit",
    "get_unit_system",
    "to_magnitude",
]

ureg = UnitRegistry()
Quantity = ureg.Quantity  # type: ignore[assignment]
Unit = ureg.Unit


@attrs.define(frozen=True, slots=True)
class QuantityUnit:
    """Unit for a specific physical quantity"""

    unit: Unit = attrs.field(converter=Unit)
    """Pint supported unit, e.g., 'psi', 'ft', 'ft^3/s'."""
    display: typing.Optional[str] = attrs.field(default=None)
    """Optional display string for UI, e.g., 'ft³/s'."""
    default: typing.Optional[float] = attrs.field(default=None)
    """Default value for the quantity in the specified unit, if applicable."""

    def __str__(self) -> str:
        return self.display or str(self.unit)


QuantityUnitT = typing.TypeVar("QuantityUnitT", bound=QuantityUnit)


class UnitSystem(defaultdict[str, QuantityUnitT]):
    """
    A unit system that maps quantity names to their QuantityUnit definitions.

    Besides the units, a unit system carries the two empirical constants the
    head calculations depend on: the gravitational acceleration expressed in
    the system's length unit, and the factor converting a pressure difference
    into an equivalent column of water.

    Example:

    ```python
    imperial = UnitSystem("imperial", gravity=32.17, pressure_head_factor=2.31)
    imperial['pressure'] = QuantityUnit(unit='psi')

    pressure_unit = imperial['pressure'].unit  # 'psi'
    ```
    """

    def __init__(
        self,
        name: str,
        __map: typing.Optional[typing.Mapping[str, QuantityUnitT]] = None,
        /,
        *,
        gravity: float,
        pressure_head_factor: float,
        default_factory: typing.Optional[typing.Callable[[], QuantityUnitT]] = None,
        **kwargs: typing.Any,
    ):
        """
        Initialize UnitSystem.

        :param name: Name of the unit system
        :param gravity: Gravitational acceleration in the system's length/time units
        :param pressure_head_factor: Head (in the system's length unit) per unit of pressure
        """
        self.name = name
        if gravity <= 0:
            raise ValidationError("Gravity must be greater than zero.")
        if pressure_head_factor <= 0:
            raise ValidationError("Pressure head factor must be greater than zero.")
        self.gravity = gravity
        self.pressure_head_factor = pressure_head_factor
        if default_factory is None:

            def _default_factory() -> QuantityUnitT:
                return typing.cast(
                    QuantityUnitT, QuantityUnit(unit="dimensionless", default=None)
                )

            default_factory = _default_factory

        map_ = dict(__map or {}, **kwargs)
        super().__init__(default_factory, map_)

    def __missing__(self, key: str) -> QuantityUnitT:
        """Return default QuantityUnit for missing keys."""
        return self.default_factory()  # type: ignore

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name}, gravity={self.gravity}, "
            f"pressure_head_factor={self.pressure_head_factor}, units={dict(self)})"
        )


IMPERIAL = UnitSystem(
    "imperial",
    {
        "length": QuantityUnit(unit="ft", display="ft"),
        "diameter": QuantityUnit(unit="ft", display="ft"),
        "roughness": QuantityUnit(unit="ft", display="ft"),
        "elevation": QuantityUnit(unit="ft", display="ft", default=0.0),
        "pressure": QuantityUnit(unit="psi", display="psi", default=0.0),
        "velocity": QuantityUnit(unit="ft/s", display="ft/s", default=0.0),
        "flow_rate": QuantityUnit(unit="ft^3/s", display="ft³/s"),
        "area": QuantityUnit(unit="ft^2", display="ft²"),
        "kinematic_viscosity": QuantityUnit(
            unit="ft^2/s", display="ft²/s", default=1.08e-5
        ),  # Water at 70 °F
        "head": QuantityUnit(unit="ft", display="ft"),
    },
    gravity=32.17,
    pressure_head_factor=2.31,  # ft of water per psi
)

METRIC = UnitSystem(
    "metric",
    {
        "length": QuantityUnit(unit="m", display="m"),
        "diameter": QuantityUnit(unit="m", display="m"),
        "roughness": QuantityUnit(unit="m", display="m"),
        "elevation": QuantityUnit(unit="m", display="m", default=0.0),
        "pressure": QuantityUnit(unit="bar", display="bar", default=0.0),
        "velocity": QuantityUnit(unit="m/s", display="m/s", default=0.0),
        "flow_rate": QuantityUnit(unit="m^3/s", display="m³/s"),
        "area": QuantityUnit(unit="m^2", display="m²"),
        "kinematic_viscosity": QuantityUnit(
            unit="m^2/s", display="m²/s", default=1.004e-6
        ),  # Water at 20 °C
        "head": QuantityUnit(unit="m", display="m"),
    },
    gravity=9.81,
    pressure_head_factor=10.2,  # m of water per bar
)

SI = METRIC  # Alias

_UNIT_SYSTEMS: typing.Dict[str, UnitSystem] = {
    "imperial": IMPERIAL,
    "metric": METRIC,
    "si": METRIC,
}


def get_unit_system(unit_system: typing.Union[UnitSystem, str]) -> UnitSystem:
    """
    Resolve a unit system from its name or return it unchanged.

    :param unit_system: A `UnitSystem` or one of 'imperial', 'metric' or 'si'
    :return: The resolved `UnitSystem`
    """
    if isinstance(unit_system, UnitSystem):
        return unit_system
    try:
        return _UNIT_SYSTEMS[str(unit_system).lower()]
    except KeyError as exc:
        raise ValidationError(f"Unknown unit system: {unit_system!r}") from exc


def to_magnitude(
    value: typing.Union[PlainQuantity, float],
    quantity: str,
    unit_system: UnitSystem,
) -> float:
    """
    Express a value as a plain float in the unit system's unit for `quantity`.

    Plain numbers are assumed to already be in the unit system's units.

    :param value: A pint quantity or a number
    :param quantity: Name of the quantity, e.g. 'length', 'pressure'
    :param unit_system: Target unit system
    :return: The magnitude of `value` in the target unit
    """
    if isinstance(value, PlainQuantity):
        return float(value.to(unit_system[quantity].unit).magnitude)
    return float(value)
