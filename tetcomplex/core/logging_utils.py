"""Logging utilities for tetcomplex.

Provides a consistent logger hierarchy and formatting without modifying the
process root logger. All tetcomplex code should obtain loggers via get_logger().
"""
from __future__ import annotations

import logging
import sys
from typing import Optional, Union

_ROOT_NAME = 'tetcomplex'
_FORMAT = logging.Formatter('%(levelname)s %(name)s: %(message)s')


def _ensure_package_root() -> logging.Logger:
    """Ensure the 'tetcomplex' logger has a single stream handler and is
    isolated from the process root logger. Returns the 'tetcomplex' logger.
    """
    root = logging.getLogger(_ROOT_NAME)
    has_non_null = any(not isinstance(h, logging.NullHandler) for h in root.handlers)
    if not has_non_null:
        # NullHandlers added by the package __init__ would swallow records
        for h in list(root.handlers):
            root.removeHandler(h)
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(_FORMAT)
        root.addHandler(handler)
    root.propagate = False
    return root


def _to_level(level: Union[str, int, None], default: int = logging.INFO) -> int:
    if level is None:
        return default
    if isinstance(level, int):
        return level
    resolved = getattr(logging, str(level).upper(), None)
    return resolved if isinstance(resolved, int) else default


def configure_logging(level: Union[str, int] = 'INFO') -> None:
    """Configure the 'tetcomplex' logger family level.

    This does NOT modify the process root logger.
    """
    root = _ensure_package_root()
    root.setLevel(_to_level(level))


def get_logger(name: str, level: Optional[Union[str, int]] = None) -> logging.Logger:
    """Return a logger under the 'tetcomplex' namespace.

    Without an explicit level the logger is left at NOTSET so it inherits the
    level configured on the package root via configure_logging().
    """
    if name != _ROOT_NAME and not name.startswith(_ROOT_NAME + '.'):
        name = f'{_ROOT_NAME}.{name}'
    log = logging.getLogger(name)
    log.setLevel(_to_level(level) if level is not None else logging.NOTSET)
    return log


__all__ = ['get_logger', 'configure_logging']
