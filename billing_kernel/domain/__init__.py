"""billing_kernel.domain -- Pure kernel value objects (clock)."""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
