from __future__ import annotations

from .config import HealthBudgets, ObservabilityConfig, RequestLogSettings, load_observability_config

__all__ = ["HealthBudgets", "ObservabilityConfig", "RequestLogSettings", "load_observability_config"]
