"""Global enums — values are persisted, keep them stable."""

from enum import Enum


class Direction(str, Enum):
    UP = "UP"
    DOWN = "DOWN"


class PositionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    WON = "WON"
    LOST = "LOST"


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class BetResult(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    REFUNDED = "REFUNDED"
