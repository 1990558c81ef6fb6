"""Core utilities and configuration."""

from linking_engine.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from linking_engine.core.config import LinkingConfigError, Settings, get_settings
from linking_engine.core.database import (
    Base,
    create_engine,
    create_session_factory,
    transaction,
)
from linking_engine.core.logging import (
    db_logger,
    get_logger,
    linking_logger,
    setup_logging,
)

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    # Config
    "LinkingConfigError",
    "Settings",
    "get_settings",
    # Database
    "Base",
    "create_engine",
    "create_session_factory",
    "transaction",
    # Logging
    "db_logger",
    "get_logger",
    "linking_logger",
    "setup_logging",
]
