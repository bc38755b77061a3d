from .manager import ExecutionManager, SigningGateway

__all__ = ["ExecutionManager", "SigningGateway"]
