"""
podmortem/config.py - Configuration

Configuration loading from JSON files, environment variables, and defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger("podmortem.config")


@dataclass
class ResilienceConfig:
    """Timeout, retry, circuit breaker, and fallback tunables for provider dispatch."""

    timeout_seconds: float = 30.0
    retry_max_attempts: int = 3  # Total attempts, including the first
    retry_delay_ms: int = 1000  # Fixed delay between attempts
    circuit_request_volume_threshold: int = 10  # Rolling window size
    circuit_failure_ratio: float = 0.5
    circuit_success_threshold: int = 3  # Consecutive trial successes to close
    circuit_delay_ms: int = 5000  # Open -> half-open cooldown
    fallback_confidence: float = 0.6

    @classmethod
    def from_env(cls) -> "ResilienceConfig":
        return cls(
            timeout_seconds=float(os.getenv("PODMORTEM_AI_TIMEOUT_SECONDS", "30")),
            retry_max_attempts=int(os.getenv("PODMORTEM_AI_RETRY_MAX_ATTEMPTS", "3")),
            retry_delay_ms=int(os.getenv("PODMORTEM_AI_RETRY_DELAY_MS", "1000")),
            circuit_request_volume_threshold=int(
                os.getenv("PODMORTEM_AI_CIRCUIT_REQUEST_VOLUME", "10")
            ),
            circuit_failure_ratio=float(os.getenv("PODMORTEM_AI_CIRCUIT_FAILURE_RATIO", "0.5")),
            circuit_success_threshold=int(
                os.getenv("PODMORTEM_AI_CIRCUIT_SUCCESS_THRESHOLD", "3")
            ),
            circuit_delay_ms=int(os.getenv("PODMORTEM_AI_CIRCUIT_DELAY_MS", "5000")),
            fallback_confidence=float(os.getenv("PODMORTEM_AI_FALLBACK_CONFIDENCE", "0.6")),
        )

    def validate(self) -> "ResilienceConfig":
        """
        Check value ranges.

        Raises:
            ValueError: On the first out-of-range value
        """
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_delay_ms < 0:
            raise ValueError(f"retry_delay_ms must be >= 0, got {self.retry_delay_ms}")
        if self.circuit_request_volume_threshold < 1:
            raise ValueError(
                "circuit_request_volume_threshold must be >= 1, "
                f"got {self.circuit_request_volume_threshold}"
            )
        if not 0.0 < self.circuit_failure_ratio <= 1.0:
            raise ValueError(
                f"circuit_failure_ratio must be in (0, 1], got {self.circuit_failure_ratio}"
            )
        if self.circuit_success_threshold < 1:
            raise ValueError(
                f"circuit_success_threshold must be >= 1, got {self.circuit_success_threshold}"
            )
        if self.circuit_delay_ms < 0:
            raise ValueError(f"circuit_delay_ms must be >= 0, got {self.circuit_delay_ms}")
        if not 0.0 <= self.fallback_confidence <= 1.0:
            raise ValueError(
                f"fallback_confidence must be in [0, 1], got {self.fallback_confidence}"
            )
        return self


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            level=os.getenv("PODMORTEM_LOG_LEVEL", "INFO"),
            format=os.getenv(
                "PODMORTEM_LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            ),
            log_file=os.getenv("PODMORTEM_LOG_FILE"),
            json_logs=os.getenv("PODMORTEM_JSON_LOGS", "false").lower() == "true",
        )


@dataclass
class PodmortemConfig:
    """Root configuration."""

    environment: str = "development"
    resilience: ResilienceConfig = field(default_factory=ResilienceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "PodmortemConfig":
        """Create configuration from environment variables."""
        return cls(
            environment=os.getenv("PODMORTEM_ENVIRONMENT", "development"),
            resilience=ResilienceConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def from_file(cls, filepath: str) -> "PodmortemConfig":
        """Load configuration from JSON file, layered over the environment."""
        path = Path(filepath)
        if not path.exists():
            logger.warning(f"Config file not found: {filepath}, using defaults")
            return cls.from_env()

        with open(path) as f:
            data = json.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "PodmortemConfig":
        config = cls.from_env()

        if "environment" in data:
            config.environment = data["environment"]

        for section in ("resilience", "logging"):
            target = getattr(config, section)
            for key, value in data.get(section, {}).items():
                if hasattr(target, key):
                    setattr(target, key, value)
                else:
                    logger.warning(f"Ignoring unknown config key: {section}.{key}")

        config.resilience.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment,
            "resilience": asdict(self.resilience),
            "logging": asdict(self.logging),
        }


_config: Optional[PodmortemConfig] = None


def load_config(filepath: Optional[str] = None) -> PodmortemConfig:
    """
    Load configuration from file or environment.

    Args:
        filepath: Optional path to JSON config file

    Returns:
        PodmortemConfig instance
    """
    global _config

    if filepath:
        _config = PodmortemConfig.from_file(filepath)
    else:
        default_paths = [
            "./podmortem.json",
            "./config/podmortem.json",
        ]

        for path in default_paths:
            if Path(path).exists():
                logger.info(f"Loading config from: {path}")
                _config = PodmortemConfig.from_file(path)
                return _config

        _config = PodmortemConfig.from_env()

    logger.info(f"Configuration loaded: environment={_config.environment}")
    return _config


def get_config() -> PodmortemConfig:
    """Get current configuration, loading if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
