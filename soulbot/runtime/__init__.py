from .supervisor import LoopHealth, PeriodicLoop, RuntimeHealth

__all__ = ["LoopHealth", "PeriodicLoop", "RuntimeHealth"]
