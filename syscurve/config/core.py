"""
Main configuration management module.
"""

from typing_extensions import Self
import attrs
import orjson
import typing
import logging
from datetime import datetime

from syscurve.exceptions import ValidationError
from syscurve.pipeline.core import FLOW_RATE_FLOOR, Pipeline
from syscurve.pipeline.solver import DEFAULT_SAMPLES, SystemCurve, SystemCurveSolver
from syscurve.types import PipelineConfig, converter
from syscurve.units import UnitSystem

logger = logging.getLogger(__name__)

__all__ = ["CurveSettings", "Configuration", "ConfigurationState"]


def _flatten(obj, parent_key: str = "", sep: str = "."):
    """Recursively flatten a nested dictionary"""
    items = []

    if isinstance(obj, dict):
        for k, v in obj.items():
            new_key = f"{parent_key}{sep}{k}" if parent_key else k
            if isinstance(v, dict):
                items.extend(_flatten(v, new_key, sep=sep).items())
            elif isinstance(v, list):
                for index, item in enumerate(v):
                    items.extend(_flatten(item, f"{new_key}{sep}{index}", sep=sep).items())
            else:
                items.append((new_key, v))
    else:
        items.append((parent_key, obj))

    return dict(items)


@attrs.define(slots=True, frozen=True)
class CurveSettings:
    """System curve sampling settings"""

    sample_count: int = attrs.field(
        default=DEFAULT_SAMPLES,
        validator=[attrs.validators.instance_of(int), attrs.validators.ge(1)],
    )
    """Number of flow rates on the system curve"""
    flow_rate_floor: float = attrs.field(
        default=FLOW_RATE_FLOOR, validator=attrs.validators.gt(0)
    )
    """Smallest flow rate used in head calculations"""


@attrs.define(slots=True, frozen=True)
class ConfigurationState:
    """Complete configuration state"""

    curve: CurveSettings = attrs.field(factory=CurveSettings)
    """System curve sampling settings"""
    pipeline: PipelineConfig = attrs.field(factory=PipelineConfig)
    """Pipeline and pipe section parameters"""
    last_updated: str = attrs.field(factory=lambda: datetime.now().isoformat())
    """Timestamp of the last update"""
    version: str = "1.0"
    """Configuration schema version"""

    def flatten(self) -> typing.Dict[str, typing.Any]:
        """Get all configurations as a flat dictionary with dot notation keys"""
        data = converter.unstructure(self)
        return _flatten(data)

    def get(self, path: str, /) -> typing.Any:
        """Get nested configuration using dot notation (e.g., 'pipeline.target_flow_rate')"""
        parts = path.split(".")
        obj = self

        for part in parts:
            if hasattr(obj, part):
                obj = getattr(obj, part)
            else:
                raise ValidationError(f"Invalid configuration path: {path}")

        return obj

    def update(self, path: str, /, **kwargs: typing.Any) -> Self:
        """
        Update nested configuration using dot notation (e.g., 'pipeline' or 'curve')

        Returns a new `ConfigurationState` instance with the updated values.
        """
        timestamp = datetime.now().isoformat()
        if path == ".":
            return attrs.evolve(self, **kwargs, last_updated=timestamp)

        parts = path.split(".")
        obj = self.get(path)
        if not attrs.has(type(obj)):
            raise ValidationError(
                f"Configuration path {path!r} does not refer to a configuration section"
            )

        new_obj = attrs.evolve(obj, **kwargs)
        # Rebuild the full configuration state with the updated nested object
        for depth in range(len(parts) - 1, -1, -1):
            parent_path = ".".join(parts[:depth])
            parent_obj = self.get(parent_path) if parent_path else self
            new_obj = attrs.evolve(parent_obj, **{parts[depth]: new_obj})
        return attrs.evolve(new_obj, last_updated=timestamp)


class Configuration:
    """System curve configuration with change observers."""

    def __init__(self, state: typing.Optional[ConfigurationState] = None) -> None:
        """
        Initialize configuration.

        :param state: Initial configuration state. Defaults are used if not given.
        """
        self._state = state or ConfigurationState()
        self._observers: typing.List[typing.Callable[[ConfigurationState], None]] = []
        logger.debug("Configuration initialized")

    @property
    def state(self) -> ConfigurationState:
        """Get current configuration state"""
        return self._state

    def observe(self, observer: typing.Callable[[ConfigurationState], typing.Any]):
        """Add configuration change observer"""
        if observer not in self._observers:
            self._observers.append(observer)
        return observer

    def unobserve(self, observer: typing.Callable[[ConfigurationState], typing.Any]):
        """Remove configuration change observer"""
        if observer in self._observers:
            self._observers.remove(observer)
        return observer

    def notify(self):
        """Notify all observers of configuration changes"""
        for observer in self._observers:
            try:
                observer(self._state)
            except Exception as exc:
                logger.error(f"Error notifying config observer: {exc}", exc_info=True)

    def get_unit_system(self) -> UnitSystem:
        """Get current unit system"""
        return self._state.pipeline.unit_system

    def get(self, path: str, /) -> typing.Any:
        """Get nested configuration using dot notation (e.g., 'pipeline.target_flow_rate')"""
        return self._state.get(path)

    def update(self, path: str, /, **kwargs: typing.Any) -> None:
        """Update nested configuration using dot notation (e.g., 'curve')"""
        self._state = self._state.update(path, **kwargs)
        logger.debug(f"Configuration updated at {path!r}: {sorted(kwargs)}")
        self.notify()

    def reset(self):
        """Reset configuration to defaults"""
        self._state = ConfigurationState()
        self.notify()
        logger.info("Configuration reset to defaults")

    def export(self) -> str:
        """Export configuration as JSON string"""
        data = converter.unstructure(self._state)
        return orjson.dumps(data, option=orjson.OPT_INDENT_2).decode()

    def import_(self, json_str: typing.Union[str, bytes]):
        """Import configuration from JSON string"""
        data = orjson.loads(json_str)
        self._state = converter.structure(data, ConfigurationState)
        logger.info(
            f"Imported configuration with {len(self._state.pipeline.sections)} pipe section(s)"
        )
        self.notify()

    @classmethod
    def from_json(cls, json_str: typing.Union[str, bytes]) -> "Configuration":
        """Create a configuration from a JSON string"""
        data = orjson.loads(json_str)
        return cls(converter.structure(data, ConfigurationState))

    def build_pipeline(self) -> Pipeline:
        """Build a `Pipeline` from the configured pipe sections"""
        return self._state.pipeline.build()

    def evaluate(self) -> SystemCurve:
        """Build the configured pipeline and compute its system curve"""
        pipeline_config = self._state.pipeline
        curve_settings = self._state.curve
        solver = SystemCurveSolver(
            self.build_pipeline(), flow_rate_floor=curve_settings.flow_rate_floor
        )
        return solver.solve(
            pipeline_config.get_target_flow_rate(),
            approximation_method=pipeline_config.approximation_method,
            unit_system=pipeline_config.unit_system,
            samples=curve_settings.sample_count,
        )
