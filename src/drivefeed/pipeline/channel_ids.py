"""Mapping between public (configured) and internal channel identifiers.

Operators configure channels by their public id, e.g. ``-1002523726746``.
Updates from the platform carry the internal id (``2523726746``). Two id
classes exist:

* broadcast channels: ``public = -(10**12 + internal)``
* legacy groups:      ``public = -(10**6 + internal)``

This module is the only place that knows the encoding.
"""
from __future__ import annotations

from enum import Enum

from ..errors import UnsupportedChannelIdFormat

BROADCAST_OFFSET = 10**12
LEGACY_OFFSET = 10**6
INT64_MIN = -(2**63)


class ChannelClass(str, Enum):
    BROADCAST = "broadcast"
    LEGACY = "legacy"


_OFFSETS = {
    ChannelClass.BROADCAST: BROADCAST_OFFSET,
    ChannelClass.LEGACY: LEGACY_OFFSET,
}


def _check_int(value: object) -> int:
    # bool is an int subclass but never a channel id
    if isinstance(value, bool) or not isinstance(value, int):
        raise UnsupportedChannelIdFormat(value, "not an integer")
    return value


def classify(public_id: int) -> ChannelClass:
    public_id = _check_int(public_id)
    if public_id < INT64_MIN:
        raise UnsupportedChannelIdFormat(public_id, "does not fit a signed 64-bit integer")
    if public_id < -BROADCAST_OFFSET:
        return ChannelClass.BROADCAST
    if -BROADCAST_OFFSET < public_id < -LEGACY_OFFSET:
        return ChannelClass.LEGACY
    if public_id >= 0:
        raise UnsupportedChannelIdFormat(public_id, "public channel ids are negative")
    raise UnsupportedChannelIdFormat(public_id)


def normalize(public_id: int) -> int:
    """Return the internal id carried by messages from ``public_id``."""
    channel_class = classify(public_id)
    return -public_id - _OFFSETS[channel_class]


def _max_internal(channel_class: ChannelClass) -> int:
    if channel_class is ChannelClass.BROADCAST:
        return -INT64_MIN - BROADCAST_OFFSET
    # legacy ids stop where the broadcast range begins
    return BROADCAST_OFFSET - LEGACY_OFFSET - 1


def denormalize(internal_id: int, channel_class: ChannelClass = ChannelClass.BROADCAST) -> int:
    """Return the public id for ``internal_id``; inverse of :func:`normalize`."""
    internal_id = _check_int(internal_id)
    channel_class = ChannelClass(channel_class)
    if internal_id < 1 or internal_id > _max_internal(channel_class):
        raise UnsupportedChannelIdFormat(
            internal_id, f"outside the {channel_class.value} internal range"
        )
    return -(_OFFSETS[channel_class] + internal_id)


__all__ = [
    "BROADCAST_OFFSET",
    "LEGACY_OFFSET",
    "ChannelClass",
    "classify",
    "denormalize",
    "normalize",
]
