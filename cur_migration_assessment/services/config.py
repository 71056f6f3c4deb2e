"""
Configuration management for CUR ingestion and report aggregation.
"""

import os
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml
from dotenv import load_dotenv

from ..models import AssessmentConfig, AggregatorSettings, ParserSettings
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Environment variable -> (section, key, type)
ENV_OVERRIDES: Dict[str, Tuple[str, str, type]] = {
    "CUR_CHUNK_SIZE_BYTES": ("parser", "chunk_size_bytes", int),
    "CUR_MAX_LINES_PER_BATCH": ("parser", "max_lines_per_batch", int),
    "CUR_MAX_RECORDS": ("parser", "max_records", int),
    "CUR_MAX_LINE_LENGTH": ("parser", "max_line_length", int),
    "CUR_BASE_TIMEOUT_SECONDS": ("parser", "base_timeout_seconds", float),
    "CUR_MEMORY_LIMIT_MB": ("parser", "memory_limit_mb", int),
    "CUR_OVERFLOW_THRESHOLD": ("parser", "overflow_threshold", int),
    "CUR_DEFAULT_REGION": ("parser", "default_region", str),
    "AGGREGATOR_MAX_RECORDS": ("aggregator", "max_records", int),
    "AGGREGATOR_BATCH_SIZE": ("aggregator", "batch_size", int),
    "AGGREGATOR_TOP_SERVICES": ("aggregator", "top_services_limit", int),
}


class ConfigManager:
    """Loads assessment configuration from YAML and the environment"""

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(exist_ok=True)

        # Load environment variables
        load_dotenv()

        self.global_config = self._load_global_config()

    @property
    def parser_settings(self) -> ParserSettings:
        return self.global_config.parser

    @property
    def aggregator_settings(self) -> AggregatorSettings:
        return self.global_config.aggregator

    def _load_global_config(self) -> AssessmentConfig:
        """Load config/global/assessment.yaml, writing defaults when it is missing"""
        config_file = self.config_dir / "global" / "assessment.yaml"

        if not config_file.exists():
            config_data = AssessmentConfig().model_dump()
            config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(config_file, "w") as f:
                yaml.dump(config_data, f, default_flow_style=False)
            logger.info("Created default configuration", path=str(config_file))
        else:
            with open(config_file, "r") as f:
                config_data = yaml.safe_load(f) or {}

        config_data = self._apply_env_overrides(config_data)
        return AssessmentConfig(**config_data)

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        for env_name, (section, key, cast) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            try:
                value = cast(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {env_name}: {raw!r}")
            data.setdefault(section, {})[key] = value

        overflow_dir = os.getenv("CUR_OVERFLOW_DIR")
        if overflow_dir:
            data["overflow_dir"] = overflow_dir
        return data

    def get_status(self) -> Dict[str, Any]:
        return {
            "config_dir": str(self.config_dir),
            "parser": self.parser_settings.model_dump(),
            "aggregator": self.aggregator_settings.model_dump(),
            "overflow_dir": self.global_config.overflow_dir,
        }
