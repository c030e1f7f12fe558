"""Connection lifecycle and state synchronization engine."""

from .dispatcher import CommandDispatcher
from .receiver import InboundStreamProcessor
from .supervisor import ConnectionSupervisor

__all__ = ["CommandDispatcher", "ConnectionSupervisor", "InboundStreamProcessor"]
