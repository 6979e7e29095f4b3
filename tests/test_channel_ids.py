import pytest

from drivefeed.errors import UnsupportedChannelIdFormat
from drivefeed.models.catalog import ChannelBinding
from drivefeed.pipeline.channel_ids import (
    BROADCAST_OFFSET,
    ChannelClass,
    classify,
    denormalize,
    normalize,
)


def test_normalize_broadcast_channel():
    assert normalize(-1002523726746) == 2523726746
    assert classify(-1002523726746) is ChannelClass.BROADCAST


def test_normalize_legacy_group():
    assert normalize(-1234567) == 234567
    assert classify(-1234567) is ChannelClass.LEGACY


def test_broadcast_round_trip():
    assert denormalize(2523726746) == -1002523726746
    assert denormalize(normalize(-1000000000001)) == -1000000000001


def test_legacy_round_trip():
    assert denormalize(234567, ChannelClass.LEGACY) == -1234567
    assert denormalize(normalize(-999999999999), "legacy") == -999999999999


@pytest.mark.parametrize(
    "value",
    [0, 5, 2523726746, -1, -1000000, -BROADCAST_OFFSET, -(2**63) - 1],
)
def test_unsupported_public_ids(value):
    with pytest.raises(UnsupportedChannelIdFormat):
        normalize(value)


@pytest.mark.parametrize("value", [True, "-1002523726746", 1.5, None])
def test_non_integer_ids_rejected(value):
    with pytest.raises(UnsupportedChannelIdFormat):
        classify(value)


def test_unsupported_format_is_value_error():
    with pytest.raises(ValueError):
        normalize(42)


def test_denormalize_rejects_out_of_range_internal_ids():
    with pytest.raises(UnsupportedChannelIdFormat):
        denormalize(0)
    with pytest.raises(UnsupportedChannelIdFormat):
        denormalize(BROADCAST_OFFSET, ChannelClass.LEGACY)


def test_binding_from_config():
    binding = ChannelBinding.from_config(-1002523726746, "dir-1")
    assert binding.normalized_channel_id == 2523726746
    assert binding.channel_class is ChannelClass.BROADCAST
    assert binding.target_parent_id == "dir-1"


def test_binding_without_parent_targets_root():
    binding = ChannelBinding.from_config(-1002523726746, "")
    assert binding.target_parent_id is None


def test_binding_rejects_positive_id():
    with pytest.raises(UnsupportedChannelIdFormat):
        ChannelBinding.from_config(2523726746)
