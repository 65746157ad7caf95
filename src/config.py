"""
Configuration module for the up/down rounds engine
Centralizes all constants, settings, and configuration with validation
"""

import os
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Any, Optional, Union

from pydantic import ValidationError

from models.game_settings import GameSettings


class ConfigError(Exception):
    """Configuration validation error"""
    pass


def _safe_int_env(name: str, default: int, min_val: int = None, max_val: int = None) -> int:
    """
    Safely parse integer environment variable with bounds.
    Falls back to default on invalid values.
    """
    logger_local = logging.getLogger(__name__)
    try:
        value = int(os.getenv(name, str(default)))
        if min_val is not None:
            value = max(min_val, value)
        if max_val is not None:
            value = min(max_val, value)
        return value
    except (ValueError, TypeError):
        logger_local.warning(f"Invalid {name}, using default {default}")
        return default


def _safe_float_env(name: str, default: float, min_val: float = None, max_val: float = None) -> float:
    """
    Safely parse float environment variable with bounds.
    Falls back to default on invalid values.
    """
    logger_local = logging.getLogger(__name__)
    try:
        value = float(os.getenv(name, str(default)))
        if value != value:  # NaN
            raise ValueError(name)
        if min_val is not None:
            value = max(min_val, value)
        if max_val is not None:
            value = min(max_val, value)
        return value
    except (ValueError, TypeError):
        logger_local.warning(f"Invalid {name}, using default {default}")
        return default


# GameSettings field -> (config section, key)
_SETTINGS_MAP = {
    'initial_balance': ('financial', 'initial_balance'),
    'round_duration_ms': ('game_rules', 'round_duration_ms'),
    'round_interval_ms': ('game_rules', 'round_interval_ms'),
    'countdown_interval_ms': ('game_rules', 'countdown_interval_ms'),
    'history_limit': ('game_rules', 'history_limit'),
    'initial_price': ('price_feed', 'initial_price'),
    'volatility': ('price_feed', 'volatility'),
    'drift': ('price_feed', 'drift'),
    'price_tick_interval_ms': ('price_feed', 'tick_interval_ms'),
    'lookback_offset_ratio': ('price_feed', 'lookback_offset_ratio'),
    'max_price_points': ('price_feed', 'max_points'),
    'price_floor': ('price_feed', 'price_floor'),
    'prefill_history': ('price_feed', 'prefill_history'),
    'seed': ('price_feed', 'seed'),
    'subject_id': ('session', 'subject_id'),
}


class Config:
    """
    Configuration management with:
    - Input validation
    - Environment variable support
    - Safe defaults
    - JSON persistence
    """

    # ========== Financial Settings ==========
    FINANCIAL = {
        'initial_balance': 10000.0,
    }

    # ========== Game Rules ==========
    GAME_RULES = {
        'round_duration_ms': 60000,  # 1 minute
        'round_interval_ms': 5000,  # 5 seconds
        'countdown_interval_ms': 1000,
        'history_limit': 1000,
    }

    # ========== Price Feed ==========
    PRICE_FEED = {
        'initial_price': 150.0,
        'volatility': 0.01,
        'drift': 0.0,
        'tick_interval_ms': 1000,
        'lookback_offset_ratio': 0.75,
        'max_points': 180,  # 3 minutes at 1 second interval
        'price_floor': 0.01,
        'prefill_history': True,
        'seed': None,
    }

    # ========== Session ==========
    SESSION = {
        'subject_id': 'player1',
    }

    # ========== Logging Settings ==========
    LOGGING = {
        'level': os.getenv('LOG_LEVEL', 'INFO'),
        'format': '%(asctime)s [t=%(timeline_ms)s] - %(name)s - %(levelname)s - %(message)s',
        'date_format': '%Y-%m-%d %H:%M:%S',
        'max_bytes': 5 * 1024 * 1024,
        'backup_count': 3,
        'colored_output': True,
        'json_logs': False,
        'file_output': os.getenv('UPDOWN_LOG_TO_FILE', 'true').lower() == 'true',
    }

    # ========== File Settings ==========
    @classmethod
    def get_files_config(cls) -> dict:
        """Get file configuration with lazy initialization to avoid import issues"""
        return {
            'config_dir': Path(os.getenv(
                'UPDOWN_CONFIG_DIR',
                str(Path.home() / '.updown')
            )),
            'log_dir': Path(os.getenv(
                'UPDOWN_LOG_DIR',
                str(Path.home() / '.updown' / 'logs')
            )),
        }

    # ========== Environment Overrides ==========
    @classmethod
    def get_env_overrides(cls) -> dict:
        """Game options set through UPDOWN_* environment variables"""
        overrides: Dict[str, Any] = {}
        if 'UPDOWN_ROUND_DURATION_MS' in os.environ:
            overrides['round_duration_ms'] = _safe_int_env(
                'UPDOWN_ROUND_DURATION_MS', cls.GAME_RULES['round_duration_ms'], 1000, 3600000
            )
        if 'UPDOWN_ROUND_INTERVAL_MS' in os.environ:
            overrides['round_interval_ms'] = _safe_int_env(
                'UPDOWN_ROUND_INTERVAL_MS', cls.GAME_RULES['round_interval_ms'], 0, 600000
            )
        if 'UPDOWN_TICK_INTERVAL_MS' in os.environ:
            overrides['price_tick_interval_ms'] = _safe_int_env(
                'UPDOWN_TICK_INTERVAL_MS', cls.PRICE_FEED['tick_interval_ms'], 10, 60000
            )
        if 'UPDOWN_INITIAL_BALANCE' in os.environ:
            overrides['initial_balance'] = _safe_float_env(
                'UPDOWN_INITIAL_BALANCE', cls.FINANCIAL['initial_balance'], 0.0
            )
        if 'UPDOWN_VOLATILITY' in os.environ:
            overrides['volatility'] = _safe_float_env(
                'UPDOWN_VOLATILITY', cls.PRICE_FEED['volatility'], 0.0, 1.0
            )
        if 'UPDOWN_DRIFT' in os.environ:
            overrides['drift'] = _safe_float_env(
                'UPDOWN_DRIFT', cls.PRICE_FEED['drift'], -0.5, 0.5
            )
        if 'UPDOWN_SEED' in os.environ:
            overrides['seed'] = _safe_int_env('UPDOWN_SEED', 0)
        return overrides

    def __init__(
        self,
        config_file: Optional[str] = None,
        validate: bool = True,
        ensure_directories: bool = True,
    ):
        """
        Initialize configuration with optional validation

        Args:
            config_file: Optional path to JSON config file
            validate: Whether to validate configuration on init
            ensure_directories: Create required directories on init
        """
        self._lock = threading.RLock()
        self._files_config: Optional[dict] = None
        self.config_file = config_file
        self._custom_settings = {}
        self._logger = None  # Will be set after logger initialization

        # Create directories if they don't exist
        if ensure_directories:
            self.ensure_directories()

        # Load custom configuration if provided
        if config_file:
            self.load_from_file(config_file)

        # Validate configuration
        if validate:
            self.validate()

    @property
    def FILES(self) -> dict:
        """Cached file configuration"""
        with self._lock:
            if self._files_config is None:
                self._files_config = self.get_files_config()
            return self._files_config

    def ensure_directories(self) -> Dict[str, bool]:
        """Ensure all required directories exist, track success."""
        status: Dict[str, bool] = {}
        logger_local = self._logger or logging.getLogger(__name__)
        for key in ['config_dir', 'log_dir']:
            path = self.FILES[key]
            try:
                path.mkdir(parents=True, exist_ok=True)
                status[key] = path.exists() and path.is_dir()
            except OSError as e:
                logger_local.warning(f"Could not create {key}: {e}")
                status[key] = False
        self._directory_status = status
        return status

    def validate(self):
        """
        Validate all configuration values

        Raises:
            ConfigError: If configuration is invalid
        """
        errors = []

        # Validate game options through the settings model
        try:
            self.game_settings()
        except ValidationError as e:
            for err in e.errors():
                field = ".".join(str(part) for part in err['loc'])
                errors.append(f"{field}: {err['msg']}")

        if self.get('price_feed', 'price_floor', 0) >= self.get('price_feed', 'initial_price', 0):
            errors.append("price_floor must be below initial_price")

        # Validate logging
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if str(self.get('logging', 'level', 'INFO')).upper() not in valid_levels:
            errors.append(f"Invalid log level: {self.get('logging', 'level')}")

        # Validate directory creation status
        if hasattr(self, '_directory_status'):
            for key, success in self._directory_status.items():
                if not success:
                    errors.append(f"Required directory {key} could not be created")

        if errors:
            raise ConfigError("Configuration validation failed:\n" + "\n".join(errors))

    def load_from_file(self, filepath: Union[str, Path]):
        """
        Load configuration from JSON file

        Args:
            filepath: Path to JSON configuration file
        """
        filepath = Path(filepath)

        if not filepath.exists():
            if self._logger:
                self._logger.warning(f"Config file not found: {filepath}")
            return

        try:
            with open(filepath, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            error_msg = f"Invalid JSON in config file: {e}"
            if self._logger:
                self._logger.error(error_msg)
            raise ConfigError(error_msg)
        except OSError as e:
            error_msg = f"Error loading config file: {e}"
            if self._logger:
                self._logger.error(error_msg)
            raise ConfigError(error_msg)

        if not isinstance(data, dict) or not all(isinstance(v, dict) for v in data.values()):
            raise ConfigError(f"Config file {filepath} must map section names to objects")

        with self._lock:
            self._custom_settings = {k.lower(): dict(v) for k, v in data.items()}

        if self._logger:
            self._logger.info(f"Loaded configuration from {filepath}")

    def save_to_file(self, filepath: Union[str, Path]):
        """
        Save current configuration to JSON file

        Args:
            filepath: Path where to save the configuration
        """
        filepath = Path(filepath)

        config_dict = self.to_dict()
        config_dict.pop('files', None)
        config_dict.pop('custom', None)

        # Ensure directory exists
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w') as f:
            json.dump(config_dict, f, indent=2, default=str)

        if self._logger:
            self._logger.info(f"Saved configuration to {filepath}")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get configuration value with support for custom settings

        Args:
            section: Configuration section name
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        with self._lock:
            section_lower = section.lower()
            if section_lower in self._custom_settings:
                if key in self._custom_settings[section_lower]:
                    return self._custom_settings[section_lower][key]

            section_attr = section.upper()
            if hasattr(self, section_attr):
                section_dict = getattr(self, section_attr)
                if isinstance(section_dict, dict):
                    return section_dict.get(key, default)

        return default

    def set(self, section: str, key: str, value: Any):
        """
        Set a configuration value

        Args:
            section: Configuration section name
            key: Configuration key
            value: Value to set
        """
        with self._lock:
            section_lower = section.lower()
            if section_lower not in self._custom_settings:
                self._custom_settings[section_lower] = {}
            self._custom_settings[section_lower][key] = value

    def set_logger(self, logger):
        """Set logger instance after logger initialization"""
        self._logger = logger

    def game_settings(self, **overrides: Any) -> GameSettings:
        """
        Build validated GameSettings

        Precedence: explicit overrides > UPDOWN_* environment > config file
        > class defaults.

        Raises:
            pydantic.ValidationError: If an option is out of range
        """
        values = {
            field: self.get(section, key)
            for field, (section, key) in _SETTINGS_MAP.items()
        }
        values.update(self.get_env_overrides())
        values.update(overrides)
        return GameSettings(**{k: v for k, v in values.items() if v is not None})

    def to_dict(self) -> dict:
        """Export entire configuration as dictionary"""
        with self._lock:
            custom_settings = {k: dict(v) for k, v in self._custom_settings.items()}

        sections = {
            'financial': dict(self.FINANCIAL),
            'game_rules': dict(self.GAME_RULES),
            'price_feed': dict(self.PRICE_FEED),
            'session': dict(self.SESSION),
            'logging': dict(self.LOGGING),
        }
        for section, values in custom_settings.items():
            sections.setdefault(section, {}).update(values)

        sections['files'] = {k: str(v) for k, v in self.FILES.items()}
        sections['custom'] = custom_settings
        return sections


# Create global configuration instance.
#
# IMPORTANT: Keep this import side-effect free. Runtime initialization (logging
# configuration, directory creation, validation) must happen in an explicit app
# startup path (see `src/main.py`).
config = Config(validate=False, ensure_directories=False)
