"""
TruDepth Error Handling
Error taxonomy for the grid sampler and overlay renderer, plus per-frame
failure accounting for the viewer loop.
"""

import logging
from typing import Optional, Callable


class TruDepthError(Exception):
    """Base class for TruDepth errors."""


class InvalidConfiguration(TruDepthError, ValueError):
    """Non-positive grid dimensions or an inconsistent style configuration."""


class InvalidArgument(TruDepthError, ValueError):
    """A caller broke the contract (e.g. points and values differ in length)."""


class ErrorHandler:
    """Counts and logs failures of frame-level work without retrying."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize error handler."""
        self.logger = logger or logging.getLogger(__name__)
        self.error_counts = {}

    def safe_execute(self, func: Callable, *args, default=None, **kwargs):
        """
        Execute a frame-level function, logging and counting failures.

        Configuration and contract errors are programming mistakes and are
        re-raised; anything else is logged and turned into ``default`` so the
        caller can keep showing its last good frame.

        Args:
            func: Function to execute
            *args: Function arguments
            default: Value returned when the call fails
            **kwargs: Function keyword arguments

        Returns:
            Function result or default value
        """
        func_name = getattr(func, '__name__', repr(func))
        try:
            return func(*args, **kwargs)
        except TruDepthError:
            raise
        except Exception as e:
            self.logger.error(f"Error in {func_name}: {e}")
            self.error_counts[func_name] = self.error_counts.get(func_name, 0) + 1
            return default

    def get_error_stats(self):
        """Get error statistics."""
        return self.error_counts.copy()
