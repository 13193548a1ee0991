"""Utilities (logging, retry, paths)"""
from .logging import log, vlog, warn, set_verbose
from .retry import attempt
from .paths import IgnoreRules

__all__ = [
    "log", "vlog", "warn", "set_verbose",
    "attempt",
    "IgnoreRules",
]
