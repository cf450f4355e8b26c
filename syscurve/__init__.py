"""
Hydraulic system curves for series pipelines.
"""

from syscurve.exceptions import *  # noqa
from syscurve.units import IMPERIAL, METRIC, SI, Quantity, UnitSystem, ureg  # noqa
from syscurve.types import (  # noqa
    ApproximationMethod,
    ElevationBand,
    PipeSectionConfig,
    PipelineConfig,
    UnitSystemName,
)
from syscurve.friction import (  # noqa
    FrictionFactorApproximator,
    SerghidesApproximation,
    get_approximator,
)
from syscurve.pipeline import (  # noqa
    CurvePoint,
    PipeSection,
    Pipeline,
    SectionHead,
    SystemCurve,
    SystemCurveSolver,
    generate_flow_range,
)
from syscurve.config import Configuration, ConfigurationState, CurveSettings  # noqa

__version__ = "0.1.0"
