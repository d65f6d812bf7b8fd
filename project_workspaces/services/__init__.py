"""
Services for project workspace orchestration.

AeroSpace command client with circuit breaker, launchers, state stores,
layout geometry, window focus cycling and the ``ProjectManager`` orchestrator.
"""

from .aerospace_client import AeroSpaceClient
from .circuit_breaker import CircuitBreaker, CircuitState, shared_circuit_breaker
from .command_runner import CommandResult, CommandRunner
from .focus_stack import FocusStack
from .project_manager import ProjectManager
from .window_cycler import CycleDirection, WindowCycler

__all__ = [
    "AeroSpaceClient",
    "CircuitBreaker",
    "CircuitState",
    "shared_circuit_breaker",
    "CommandResult",
    "CommandRunner",
    "FocusStack",
    "ProjectManager",
    "CycleDirection",
    "WindowCycler",
]
