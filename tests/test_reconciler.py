"""Tests for partial snapshot reconciliation."""

import dataclasses

import pytest

from crowdfeed.state import (
    HeatZone,
    Location,
    PartialSnapshot,
    RiskLevel,
    Snapshot,
    Status,
    merge,
)


class TestMerge:
    """merge() replaces provided fields and keeps the rest."""

    def test_omitted_fields_are_the_same_objects(self, baseline):
        zones = (HeatZone((0.0, 0.0, 0.0), 0.1, 0.5),)
        merged = merge(baseline, PartialSnapshot(heat_zones=zones))

        assert merged.heat_zones == zones
        assert merged.locations is baseline.locations
        assert merged.particles is baseline.particles
        assert merged.status is baseline.status

    def test_provided_field_replaced_wholesale(self, baseline):
        locs = (Location((0.0, 0.0, 0.0), "Panchavati", RiskLevel.LOW),)
        merged = merge(baseline, PartialSnapshot(locations=locs))
        assert merged.locations == locs
        assert len(merged.locations) == 1

    def test_empty_tuple_clears_field(self, baseline):
        merged = merge(baseline, PartialSnapshot(particles=()))
        assert merged.particles == ()
        assert merged.heat_zones is baseline.heat_zones

    def test_empty_partial_returns_current(self, baseline):
        assert merge(baseline, PartialSnapshot()) is baseline

    def test_values_are_not_clamped(self):
        zone = HeatZone((0.0, 0.0, 0.0), 0.1, 2.0)
        merged = merge(Snapshot(), PartialSnapshot(heat_zones=(zone,)))
        assert merged.heat_zones[0].intensity == 2.0

    def test_input_snapshot_untouched(self, baseline):
        before = baseline.as_dict()
        merge(baseline, PartialSnapshot(heat_zones=(), particles=()))
        assert baseline.as_dict() == before

    def test_never_produces_none_fields(self):
        merged = merge(Snapshot(status=Status.SIMULATED), PartialSnapshot())
        assert merged.locations == ()
        assert merged.heat_zones == ()
        assert merged.particles == ()

    def test_snapshot_is_immutable(self, baseline):
        with pytest.raises(dataclasses.FrozenInstanceError):
            baseline.heat_zones = ()


class TestPartialSnapshot:

    def test_fields_lists_provided_only(self):
        partial = PartialSnapshot(locations=(), particles=())
        assert partial.fields() == ("locations", "particles")
        assert not partial.is_empty()

    def test_empty(self):
        assert PartialSnapshot().is_empty()
        assert PartialSnapshot().fields() == ()
