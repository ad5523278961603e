"""Retry strategies and cancellable handles used by protection scopes."""

from armor.execution.handles import ManagedSubscription, ManagedTimer
from armor.execution.retry import ConstantBackoff, LinearBackoff, NoRetry, RetryStrategy

__all__ = [
    "ManagedSubscription",
    "ManagedTimer",
    "RetryStrategy",
    "LinearBackoff",
    "ConstantBackoff",
    "NoRetry",
]
