"""
Tests for pipe section validation and head calculations.
"""

import math

import pytest

from syscurve.exceptions import ValidationError
from syscurve.pipeline.core import PipeSection
from syscurve.types import ElevationBand
from syscurve.units import IMPERIAL, METRIC


def test_derived_geometry(section):
    assert section.hydraulic_area == pytest.approx(math.pi * 0.25 / 4.0)
    assert section.relative_roughness == pytest.approx(0.0004)
    assert not section.has_velocity_head
    assert not section.has_elevation_band


@pytest.mark.parametrize(
    "override",
    [
        {"diameter": 0.0},
        {"diameter": -0.5},
        {"length": 0.0},
        {"absolute_roughness": -1e-4},
        {"kinematic_viscosity": 0.0},
        {"target_flow_rate": 0.0},
        {"k_values": []},
        {"k_values": [0.5, -0.1]},
    ],
)
def test_invalid_parameters_are_rejected(section_params, override):
    with pytest.raises(ValidationError):
        PipeSection(**{**section_params, **override})


def test_zero_roughness_is_allowed(section_params):
    section = PipeSection(**{**section_params, "absolute_roughness": 0.0})
    assert section.relative_roughness == 0.0


@pytest.mark.parametrize(
    "initial, final",
    [
        (ElevationBand(10.0, 20.0), ElevationBand(0.0, 5.0)),  # z2_max < z1_min
        (ElevationBand(0.0, 10.0), ElevationBand(5.0, 30.0)),  # z2_min < z1_max
        (10.0, 9.0),
    ],
)
def test_crossing_elevation_bands_are_rejected(section_params, initial, final):
    with pytest.raises(ValidationError):
        PipeSection(
            **section_params, initial_elevation=initial, final_elevation=final
        )


def test_inverted_elevation_band_is_rejected():
    with pytest.raises(ValidationError):
        ElevationBand(10.0, 5.0)


def test_single_elevation_is_degenerate_band(section_params):
    section = PipeSection(**section_params, initial_elevation=2.0, final_elevation=12.0)
    assert section.initial_elevation == ElevationBand(2.0, 2.0)
    assert not section.initial_elevation.is_range
    assert not section.has_elevation_band


def test_setter_revalidates_and_rolls_back(section):
    with pytest.raises(ValidationError):
        section.diameter = 0.0
    assert section.diameter == 0.5
    assert section.hydraulic_area == pytest.approx(math.pi * 0.25 / 4.0)

    section.diameter = 1.0
    assert section.hydraulic_area == pytest.approx(math.pi / 4.0)
    assert section.relative_roughness == pytest.approx(0.0002)


def test_update_applies_all_changes_or_none(section):
    with pytest.raises(ValidationError):
        section.update(length=500.0, k_values=[])
    assert section.length == 100.0
    assert section.k_values == (0.5,)

    section.update(length=500.0, k_values=[0.5, 0.25])
    assert section.length == 500.0
    assert section.k_values == (0.5, 0.25)


def test_update_checks_elevations_together(section):
    # Raising the inlet alone would cross the outlet, so both move together
    section.update(initial_elevation=50.0, final_elevation=60.0)
    assert section.initial_elevation.minimum == 50.0

    with pytest.raises(ValidationError):
        section.initial_elevation = 70.0
    assert section.initial_elevation.minimum == 50.0


def test_update_rejects_unknown_parameters(section):
    with pytest.raises(TypeError):
        section.update(colour="red")


def test_update_with_unconvertible_value_changes_nothing(section):
    with pytest.raises(TypeError):
        section.update(diameter=-1.0, k_values=None)
    assert section.diameter == 0.5
    assert section.k_values == (0.5,)

    with pytest.raises(ValueError):
        section.update(length=250.0, final_pressure="high")
    assert section.length == 100.0
    assert section.final_pressure == 0.0


@pytest.mark.parametrize(
    "override",
    [
        {"diameter": math.nan},
        {"length": math.nan},
        {"length": math.inf},
        {"absolute_roughness": math.nan},
        {"kinematic_viscosity": math.nan},
        {"target_flow_rate": math.nan},
        {"k_values": [0.5, math.nan]},
        {"initial_pressure": math.nan},
        {"final_velocity": math.inf},
        {"final_elevation": math.nan},
    ],
)
def test_non_finite_parameters_are_rejected(section_params, override):
    with pytest.raises(ValidationError):
        PipeSection(**{**section_params, **override})


def test_setting_nan_diameter_is_rolled_back(section):
    with pytest.raises(ValidationError):
        section.diameter = math.nan
    assert section.diameter == 0.5


def test_pressure_head_uses_unit_system_factor(section_params, approximator):
    section = PipeSection(**section_params, initial_pressure=10.0, final_pressure=20.0)
    imperial = section.compute_head(approximator, 1.0, IMPERIAL)
    metric = section.compute_head(approximator, 1.0, METRIC)
    assert imperial.pressure_head == pytest.approx(23.1)
    assert metric.pressure_head == pytest.approx(102.0)


def test_velocity_head_only_when_velocities_differ(section_params, approximator):
    flow_rate = 2.0
    steady = PipeSection(**section_params, initial_velocity=3.0, final_velocity=3.0)
    assert steady.compute_head(approximator, flow_rate).velocity_head == 0.0

    accelerating = PipeSection(
        **section_params, initial_velocity=0.0, final_velocity=3.0
    )
    head = accelerating.compute_head(approximator, flow_rate, IMPERIAL)
    area = accelerating.hydraulic_area
    assert accelerating.has_velocity_head
    assert head.velocity_head == pytest.approx(flow_rate**2 / (2 * 32.17 * area**2))


def test_major_and_minor_losses(section, approximator):
    flow_rate = 5.0
    head = section.compute_head(approximator, flow_rate, IMPERIAL)

    area = section.hydraulic_area
    kinetic_head = flow_rate**2 / (2 * 32.17 * area**2)
    reynolds_number = (flow_rate / area) * (0.5 / 1.1e-5)
    friction_factor = approximator.calculate_friction_factor(0.0004, reynolds_number)

    assert head.reynolds_number == pytest.approx(reynolds_number)
    assert head.friction_factor == pytest.approx(friction_factor)
    assert head.major_loss == pytest.approx(friction_factor * 200.0 * kinetic_head)
    assert head.minor_loss == pytest.approx(0.5 * kinetic_head)
    assert head.tdh == pytest.approx(head.major_loss + head.minor_loss)


def test_metric_losses_use_metric_gravity(section, approximator):
    imperial = section.compute_head(approximator, 5.0, IMPERIAL)
    metric = section.compute_head(approximator, 5.0, "metric")
    assert metric.minor_loss == pytest.approx(imperial.minor_loss * 32.17 / 9.81)


def test_elevation_band_gives_max_and_min_heads(banded_section, approximator):
    head = banded_section.compute_head(approximator, 4.0)
    assert banded_section.has_elevation_band
    assert head.static_head_max == 30.0
    assert head.static_head_min == 15.0
    assert head.max_tdh - head.min_tdh == pytest.approx(15.0)


def test_zero_flow_rate_is_clamped(section, approximator):
    head = section.compute_head(approximator, 0.0)
    assert head.flow_rate == 0.0
    assert head.reynolds_number > 0
    assert math.isfinite(head.max_tdh)
    assert head.max_tdh == pytest.approx(0.0, abs=1e-6)


def test_evaluate_preserves_flow_rate_order(section, approximator):
    flow_rates = [3.0, 1.0, 2.0]
    heads = section.evaluate(approximator, flow_rates)
    assert [head.flow_rate for head in heads] == flow_rates


def test_single_section_curve_increases_with_flow_rate(section, approximator):
    heads = section.execute(approximator, IMPERIAL)
    assert len(heads) == 20
    assert heads[-1].flow_rate == pytest.approx(10.0)
    tdh = [head.tdh for head in heads]
    assert all(later > earlier for earlier, later in zip(tdh, tdh[1:]))


def test_copy_is_detached(pipeline):
    original = pipeline[0]
    duplicate = original.copy()
    assert duplicate.pipeline is None
    assert original.pipeline is pipeline
    duplicate.length = 10.0
    assert original.length == 100.0
