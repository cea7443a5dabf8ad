# core/config.py
from __future__ import annotations
from dataclasses import dataclass, replace
import logging

from core.exceptions import ConfigError


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Numerical knobs shared by every apply call.

    * ``pivot_tol``: a triangular or diagonal pivot whose magnitude is at most
      ``pivot_tol`` times the largest pivot of the same factor is singular.
    * ``check_finite``: forwarded to the scipy solvers.
    * ``log_level``: level applied by :func:`utils.logging_config.setup_logging`.
    """
    pivot_tol: float = 1e-13
    check_finite: bool = False
    log_level: str = "WARNING"

    def __post_init__(self):
        if not self.pivot_tol >= 0.0:
            raise ConfigError(f"pivot_tol must be non-negative, got {self.pivot_tol!r}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"Unknown log level {self.log_level!r}")

    @property
    def level(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    def with_overrides(self, **changes) -> "EngineConfig":
        return replace(self, **changes)


DEFAULT_CONFIG = EngineConfig()
