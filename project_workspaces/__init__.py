"""Project Workspaces

Per-project AeroSpace workspace orchestration for macOS.

This package provides the activation orchestrator that:
- Finds or launches one IDE window and one browser window per project
- Moves both into the project's dedicated AeroSpace workspace
- Verifies workspace and window focus with bounded polling
- Fails fast while AeroSpace is unresponsive (circuit breaker)
- Computes, restores and repairs window geometry across monitors

Author: Project Workspaces
License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
