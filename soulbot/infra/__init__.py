from .log import get_logger
from .telemetry import RuntimeEventLogger
from .broadcast import EventBus

__all__ = ["get_logger", "RuntimeEventLogger", "EventBus"]
