"""
Pass context management with context-local storage.
"""

import contextvars
import uuid
from typing import Optional

# Context variable for the current pass ID
_run_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "run_id", default=None
)


def get_run_id() -> Optional[str]:
    """Get the current pass run ID from context."""
    return _run_id_var.get()


def set_run_id(run_id: str) -> contextvars.Token:
    """Set the run ID in context. Returns token for reset."""
    return _run_id_var.set(run_id)


def generate_run_id(prefix: str = "run") -> str:
    """Generate a new run ID."""
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


class RunContext:
    """
    Context manager for pass-scoped operations.

    Usage:
        with RunContext(prefix="audit") as ctx:
            logger.info("Starting")  # log records carry ctx.run_id

    Worker threads do not inherit context variables on their own; submit work
    through contextvars.copy_context().run to keep the run ID in their logs.
    """

    def __init__(self, run_id: Optional[str] = None, prefix: str = "run"):
        self.run_id = run_id or generate_run_id(prefix)
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> "RunContext":
        self._token = set_run_id(self.run_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _run_id_var.reset(self._token)
