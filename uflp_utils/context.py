"""
Context utilities to inject instance/algorithm IDs into log records.
"""
import logging
from contextvars import ContextVar
from contextlib import contextmanager
from typing import Optional

instance_id_var: ContextVar[Optional[str]] = ContextVar("instance_id", default=None)
algorithm_var: ContextVar[Optional[str]] = ContextVar("algorithm", default=None)


class LogContextFilter(logging.Filter):
    """
    Adds contextvars to LogRecord so formatters can print them.
    """
    def filter(self, record: logging.LogRecord) -> bool:
        record.instance_id = instance_id_var.get() or "-"
        record.algorithm = algorithm_var.get() or "-"
        return True


@contextmanager
def run_context(instance_id: Optional[str], algorithm: Optional[str] = None):
    """Tags every record logged inside the block; `None` keeps the enclosing value."""
    tokens = []
    if instance_id is not None:
        tokens.append((instance_id_var, instance_id_var.set(str(instance_id))))
    if algorithm is not None:
        tokens.append((algorithm_var, algorithm_var.set(str(algorithm))))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
