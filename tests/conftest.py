import pytest

from syscurve.friction import SerghidesApproximation
from syscurve.pipeline.core import PipeSection, Pipeline


@pytest.fixture
def section_params() -> dict:
    """Water in a 6 in. commercial steel pipe, imperial units."""
    return dict(
        length=100.0,
        diameter=0.5,
        absolute_roughness=0.0002,
        kinematic_viscosity=1.1e-5,
        target_flow_rate=10.0,
        k_values=[0.5],
    )


@pytest.fixture
def section(section_params) -> PipeSection:
    return PipeSection(**section_params, name="Suction")


@pytest.fixture
def banded_section(section_params) -> PipeSection:
    from syscurve.types import ElevationBand

    return PipeSection(
        **section_params,
        initial_elevation=ElevationBand(0.0, 5.0),
        final_elevation=ElevationBand(20.0, 30.0),
        name="Riser",
    )


@pytest.fixture
def approximator() -> SerghidesApproximation:
    return SerghidesApproximation()


@pytest.fixture
def pipeline(section_params) -> Pipeline:
    discharge = dict(
        section_params,
        length=250.0,
        diameter=0.4,
        k_values=[0.9, 0.9, 0.2, 1.0],
        final_elevation=15.0,
    )
    return Pipeline(
        [
            PipeSection(**section_params, name="Suction"),
            PipeSection(**discharge, name="Discharge"),
        ],
        name="Booster",
    )
