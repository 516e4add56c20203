# Epoch values are rational numbers of epochs: number + index / length.
# See https://github.com/nervosnetwork/rfcs/blob/master/rfcs/0017-tx-valid-since/0017-tx-valid-since.md
import json
import pyickb.error
import typing

since_flag_absolute_epoch = 0x20
since_flag_relative_epoch = 0xa0
since_flag_metric_mask = 0x60
since_flag_metric_epoch = 0x20


class Epoch:
    def __init__(self, number: int, index: int, length: int) -> None:
        self.number = number
        self.index = index
        self.length = length

    def __eq__(self, other: object) -> bool:
        assert isinstance(other, Epoch)
        return all([
            self.number == other.number,
            self.index == other.index,
            self.length == other.length,
        ])

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def json(self) -> typing.Dict:
        return {
            'number': self.number,
            'index': self.index,
            'length': self.length,
        }

    def encode(self) -> int:
        assert 0 <= self.number < 1 << 24
        assert 0 <= self.index < 1 << 16
        assert 0 <= self.length < 1 << 16
        return self.length << 40 | self.index << 24 | self.number

    @classmethod
    def decode(cls, data: int) -> typing.Self:
        return cls(data & 0xffffff, data >> 24 & 0xffff, data >> 40 & 0xffff)

    def since(self) -> int:
        return since_flag_absolute_epoch << 56 | self.encode()


def is_absolute_epoch_since(since: int) -> bool:
    return since >> 56 == since_flag_absolute_epoch


def is_epoch_since(since: int) -> bool:
    # Absolute or relative, the metric bits of the flag select epochs.
    return since >> 56 & since_flag_metric_mask == since_flag_metric_epoch


def since_decode(since: int) -> Epoch:
    assert is_epoch_since(since)
    return Epoch.decode(since & 0xffffffffffffff)


def compare(e0: Epoch, e1: Epoch) -> int:
    for e in [e0, e1]:
        if e.length == 0:
            raise pyickb.error.ZeroEpochLength(e)
    if e0.number != e1.number:
        return -1 if e0.number < e1.number else 1
    v0 = e0.index * e1.length
    v1 = e1.index * e0.length
    if v0 != v1:
        return -1 if v0 < v1 else 1
    return 0


def add(e: Epoch, delta: Epoch) -> Epoch:
    for c in [e, delta]:
        if c.length == 0:
            raise pyickb.error.ZeroEpochLength(c)
    index = delta.index
    if e.length != delta.length:
        # Rescale the delta to the length of e, rounding up.
        index = -(-delta.index * e.length // delta.length)
    index = e.index + index
    return Epoch(e.number + delta.number + index // e.length, index % e.length, e.length)
