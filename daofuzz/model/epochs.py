"""Epoch arithmetic relative to the protocol start time."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EpochClock:
    """
    Maps timestamps to epochs.

    Epoch 0 is everything before `start_time`; epoch 1 starts at
    `start_time` and each epoch lasts `epoch_period` seconds.
    """
    start_time: int
    epoch_period: int

    def __post_init__(self):
        if self.epoch_period <= 0:
            raise ValueError("epoch_period must be positive")

    def epoch_of(self, timestamp: int) -> int:
        if timestamp < self.start_time:
            return 0
        return (timestamp - self.start_time) // self.epoch_period + 1

    def epoch_start(self, epoch: int) -> int:
        """First timestamp of `epoch` (epoch must be >= 1)."""
        if epoch < 1:
            raise ValueError("epoch 0 has no start time")
        return self.start_time + (epoch - 1) * self.epoch_period

    def epoch_end(self, epoch: int) -> int:
        """Last timestamp of `epoch`."""
        return self.epoch_start(epoch) + self.epoch_period - 1

    def same_epoch(self, t1: int, t2: int) -> bool:
        return self.epoch_of(t1) == self.epoch_of(t2)
