# Trailing trigger-band monitor
from .trigger import (
    TriggerMonitor,
    MonitorState,
    Stance,
    MonitorError,
    StanceError,
    InvalidInputError,
)

__all__ = [
    "TriggerMonitor",
    "MonitorState",
    "Stance",
    "MonitorError",
    "StanceError",
    "InvalidInputError",
]
