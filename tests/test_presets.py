import pytest

from patchbound.patcher import PatcherDescription
from patchbound.presets import Preset, PresetApplier


@pytest.fixture
def presets():
    return [
        Preset(name="Dark", preset={"cut_off": 300.0, "res": {"value": 0.8}}),
        Preset(name="Bright", preset={"cut_off": 12000.0, "unknown": 1.0}),
    ]


def test_apply_hands_payload_to_device(device, presets):
    applier = PresetApplier(device, presets)

    applied = applier.apply(0)

    assert applied.name == "Dark"
    assert device.applied_presets == [presets[0].preset]
    assert device.get_parameter_value("cut_off") == 300.0
    assert device.get_parameter_value("res") == 0.8


def test_applied_values_reach_subscribers(device, store, presets):
    device.subscribe_parameter_changes(store.apply_notification)

    PresetApplier(device, presets).apply(1)

    assert store.value("cut_off") == 12000.0
    assert store.get_state("cut_off").source == "device"


@pytest.mark.parametrize("index", [-1, 2, 10])
def test_index_out_of_bounds(device, presets, index):
    applier = PresetApplier(device, presets)

    with pytest.raises(IndexError):
        applier.apply(index)
    assert device.applied_presets == []


def test_no_presets_means_not_available(device):
    applier = PresetApplier(device, [])

    assert not applier.is_available
    assert len(applier) == 0


def test_from_patcher(device):
    patcher = PatcherDescription.from_export(
        {"presets": [{"name": "Init", "preset": {"cut_off": 1000}}, {"name": "Blank"}]},
    )
    applier = PresetApplier.from_patcher(device, patcher)

    assert applier.names == ["Init", "Blank"]
    applier.apply(1)
    assert device.applied_presets == [None]
