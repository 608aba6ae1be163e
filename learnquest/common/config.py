"""
Centralized Configuration for LearnQuest Assessments

Configuration is resolved from, in increasing priority:
1. Defaults declared on the models below
2. A YAML or JSON file named by ``CONFIG_PATH``
3. Environment variables (a ``.env`` file is loaded first when present)
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from learnquest.common.utils import parse_bool

logger = logging.getLogger(__name__)


class DatabaseConfig(BaseModel):
    """Database configuration"""
    url: str = "sqlite+aiosqlite:///./learnquest.db"
    echo: bool = False
    pool_size: int = 5
    run_migrations: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    use_json: bool = False
    file_path: Optional[str] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class AssessmentConfig(BaseModel):
    """Quiz defaults and limits applied when definitions are validated."""
    default_max_attempts: int = 3
    default_passing_score: int = 70
    default_is_required: bool = True
    default_question_points: int = 1
    max_attempts_limit: int = 10
    max_time_limit_minutes: int = 300
    max_question_points: int = 100
    min_options: int = 2
    max_options: int = 4

    @field_validator('default_passing_score')
    @classmethod
    def validate_passing_score(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError(f"Passing score must be between 0 and 100, got {v}")
        return v

    @model_validator(mode='after')
    def validate_ranges(self) -> 'AssessmentConfig':
        if not 1 <= self.default_max_attempts <= self.max_attempts_limit:
            raise ValueError("default_max_attempts must be between 1 and max_attempts_limit")
        if not 1 <= self.default_question_points <= self.max_question_points:
            raise ValueError("default_question_points must be between 1 and max_question_points")
        if not 2 <= self.min_options <= self.max_options:
            raise ValueError("min_options must be at least 2 and not exceed max_options")
        return self


class APIConfig(BaseModel):
    """API configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    prefix: str = "/api/assessments"


class AppConfig(BaseModel):
    """Main application configuration"""
    app_name: str = "LearnQuest Assessments"
    version: str = "0.1.0"
    env: str = "development"
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    assessment: AssessmentConfig = Field(default_factory=AssessmentConfig)
    api: APIConfig = Field(default_factory=APIConfig)

    @field_validator('env')
    @classmethod
    def validate_env(cls, v: str) -> str:
        valid_envs = ['development', 'testing', 'staging', 'production']
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v.lower()

    @property
    def is_testing(self) -> bool:
        return self.env == "testing"

    @property
    def is_production(self) -> bool:
        return self.env == "production"


# Environment variable -> (section, key, converter)
ENV_OVERRIDES: Dict[str, Tuple[Optional[str], str, Any]] = {
    "APP_ENV": (None, "env", str),
    "DATABASE_URL": ("database", "url", str),
    "DB_ECHO": ("database", "echo", parse_bool),
    "DB_POOL_SIZE": ("database", "pool_size", int),
    "DB_RUN_MIGRATIONS": ("database", "run_migrations", parse_bool),
    "LOG_LEVEL": ("logging", "level", str),
    "LOG_JSON": ("logging", "use_json", parse_bool),
    "LOG_FILE": ("logging", "file_path", str),
    "QUIZ_DEFAULT_MAX_ATTEMPTS": ("assessment", "default_max_attempts", int),
    "QUIZ_DEFAULT_PASSING_SCORE": ("assessment", "default_passing_score", int),
    "QUIZ_MAX_ATTEMPTS_LIMIT": ("assessment", "max_attempts_limit", int),
    "QUIZ_MAX_TIME_LIMIT_MINUTES": ("assessment", "max_time_limit_minutes", int),
    "API_HOST": ("api", "host", str),
    "API_PORT": ("api", "port", int),
    "API_RELOAD": ("api", "reload", parse_bool),
    "API_PREFIX": ("api", "prefix", str),
}


class ConfigLoader:
    """
    Configuration loader for the application.

    Loads configuration from:
    1. Default values
    2. Config file
    3. Environment variables (highest priority)
    """

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to config file (YAML or JSON)
            environ: Environment mapping to read overrides from (defaults to os.environ)
        """
        if environ is None:
            load_dotenv()
            environ = dict(os.environ)
        self.environ = environ
        self.config_path = config_path or environ.get("CONFIG_PATH")
        self._config: Optional[AppConfig] = None

    def load(self) -> AppConfig:
        if self._config is not None:
            return self._config

        data: Dict[str, Any] = {}
        if self.config_path:
            data = self._load_from_file(self.config_path)

        self._apply_environment(data)
        self._config = AppConfig(**data)
        return self._config

    def _apply_environment(self, data: Dict[str, Any]) -> None:
        for env_name, (section, key, convert) in ENV_OVERRIDES.items():
            raw = self.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except ValueError as e:
                logger.warning(f"Ignoring invalid value for {env_name}: {e}")
                continue
            target = data if section is None else data.setdefault(section, {})
            target[key] = value

    def _load_from_file(self, path: str) -> Dict[str, Any]:
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        try:
            with open(path, 'r') as f:
                if path.suffix.lower() in ['.yaml', '.yml']:
                    return yaml.safe_load(f) or {}
                if path.suffix.lower() == '.json':
                    return json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
            return {}

        logger.warning(f"Unsupported config file format: {path.suffix}")
        return {}


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the loaded configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = ConfigLoader().load()
    return _config


def reload_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Reload the configuration.

    Args:
        config_path: Path to config file

    Returns:
        Reloaded configuration
    """
    global _config
    _config = ConfigLoader(config_path).load()
    return _config
