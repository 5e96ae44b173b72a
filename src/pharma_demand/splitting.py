"""
Holdout Splitter

Partitions each product series into a training prefix and a holdout suffix
of fixed length, used only for model comparison.

Policies for series shorter than the holdout window:
1. exclude: raise InsufficientDataError (product reported as excluded)
2. reduce: shrink the holdout so at least min_train_size points remain

Both policies ensure no information leakage.
"""

import logging
from dataclasses import dataclass
from typing import Dict

from .errors import InsufficientDataError
from .series_store import DemandSeries

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class HoldoutSplit:
    """Represents a single train/holdout split"""
    product_id: str
    train: DemandSeries
    holdout: DemandSeries

    def __post_init__(self):
        """Validate no leakage"""
        if self.train.end >= self.holdout.start:
            raise ValueError(
                f"Train/holdout leakage: train_end ({self.train.end}) >= "
                f"holdout_start ({self.holdout.start})"
            )

    @property
    def train_size(self) -> int:
        return len(self.train)

    @property
    def holdout_size(self) -> int:
        return len(self.holdout)

    @property
    def info(self) -> Dict:
        """Serialize split info"""
        return {
            "product_id": self.product_id,
            "train_start": self.train.start.isoformat(),
            "train_end": self.train.end.isoformat(),
            "holdout_start": self.holdout.start.isoformat(),
            "holdout_end": self.holdout.end.isoformat(),
            "train_size": self.train_size,
            "holdout_size": self.holdout_size,
        }


class HoldoutSplitter:
    """Last-N-periods holdout strategy"""

    def __init__(
        self,
        holdout_length: int = 6,
        policy: str = "exclude",
        min_train_size: int = 1
    ):
        """
        Initialize holdout splitter

        Args:
            holdout_length: Number of trailing periods held out for evaluation
            policy: "exclude" or "reduce" for series that are too short
            min_train_size: Minimum training observations kept
        """
        if holdout_length < 1:
            raise ValueError(f"holdout_length must be >= 1, got {holdout_length}")
        if min_train_size < 1:
            raise ValueError(f"min_train_size must be >= 1, got {min_train_size}")
        if policy not in ("exclude", "reduce"):
            raise ValueError(f"Unknown split policy: {policy}")

        self.holdout_length = holdout_length
        self.policy = policy
        self.min_train_size = min_train_size

    def split(self, series: DemandSeries) -> HoldoutSplit:
        n = len(series)
        holdout_length = self.holdout_length

        if n - holdout_length < self.min_train_size:
            if self.policy == "reduce" and n - self.min_train_size >= 1:
                holdout_length = n - self.min_train_size
                logger.info(
                    f"{series.product_id}: holdout reduced "
                    f"{self.holdout_length} -> {holdout_length} ({n} observations)"
                )
            else:
                raise InsufficientDataError(
                    series.product_id,
                    n_obs=n,
                    required=self.holdout_length + self.min_train_size,
                    details={"holdout_length": self.holdout_length, "policy": self.policy},
                )

        split = HoldoutSplit(
            product_id=series.product_id,
            train=series.head(n - holdout_length),
            holdout=series.tail(holdout_length),
        )
        logger.debug(f"Split {series.product_id}: {split.info}")
        return split


def split(
    series: DemandSeries,
    holdout_length: int,
    policy: str = "exclude",
    min_train_size: int = 1
) -> HoldoutSplit:
    """
    Split a series into training and holdout windows

    Args:
        series: Product demand series
        holdout_length: Number of trailing periods to hold out
        policy: "exclude" or "reduce"
        min_train_size: Minimum training observations

    Returns:
        HoldoutSplit covering the whole series with no overlap and no gap

    Raises:
        InsufficientDataError: series too short under the chosen policy
    """
    return HoldoutSplitter(holdout_length, policy, min_train_size).split(series)
