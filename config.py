import os
import logging
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def _clean_env(value: str) -> str:
    """Strip inline comments and whitespace from an env value."""
    if value is None:
        return ""
    return value.split('#', 1)[0].strip()


def _get_env_str(name: str, default: str) -> str:
    return _clean_env(os.getenv(name, default)) or default


def _get_env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, str(default))
    val = _clean_env(raw).lower()
    return val in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    cleaned = _clean_env(raw)
    try:
        return int(cleaned) if cleaned != "" else int(default)
    except ValueError:
        return int(default)


def _get_env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    cleaned = _clean_env(raw)
    try:
        return float(cleaned) if cleaned != "" else float(default)
    except ValueError:
        return float(default)


def _get_env_list(name: str, default: str) -> List[str]:
    raw = _clean_env(os.getenv(name, default))
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Configuration class for the Kisan AI backend"""

    # API Keys
    OPENAI_API_KEY: str = _clean_env(os.getenv("OPENAI_API_KEY", ""))
    OPENWEATHER_API_KEY: str = _clean_env(os.getenv("OPENWEATHER_API_KEY", ""))

    # Model Configuration
    OPENAI_MODEL: str = _get_env_str("OPENAI_MODEL", "gpt-4o-mini")
    LLM_TIMEOUT_SECONDS: float = _get_env_float("LLM_TIMEOUT_SECONDS", 30.0)
    LLM_MAX_TOKENS: int = _get_env_int("LLM_MAX_TOKENS", 1024)
    LLM_TEMPERATURE: float = _get_env_float("LLM_TEMPERATURE", 0.4)

    # Weather API Configuration
    OPENWEATHER_BASE_URL: str = _get_env_str("OPENWEATHER_BASE_URL", "https://api.openweathermap.org/data/2.5")
    WEATHER_TIMEOUT_SECONDS: float = _get_env_float("WEATHER_TIMEOUT_SECONDS", 15.0)
    DEFAULT_LOCATION: str = _get_env_str("DEFAULT_LOCATION", "Bangalore, Karnataka, IN")

    # Server Configuration
    HOST: str = _get_env_str("HOST", "0.0.0.0")
    PORT: int = _get_env_int("PORT", 5000)
    DEBUG: bool = _get_env_bool("DEBUG", False)
    LOG_LEVEL: str = _get_env_str("LOG_LEVEL", "INFO").upper()
    CORS_ORIGINS: List[str] = _get_env_list("CORS_ORIGINS", "*")

    # Regions with a seasonal weather baseline for the synthetic generator
    REGIONAL_WEATHER_BASELINES = {
        "karnataka": {
            "monsoon": {"temperature": 24, "humidity": 85, "rainfall": 15, "rainfall_spread": 20, "condition": "Rainy"},
            "winter": {"temperature": 22, "humidity": 55, "rainfall": 0, "rainfall_spread": 0, "condition": "Clear"},
            "shoulder": {"temperature": 28, "humidity": 70, "rainfall": 2, "rainfall_spread": 0, "condition": "Partly Cloudy"},
        },
    }
    DEFAULT_WEATHER_BASELINE = {"temperature": 25, "humidity": 60, "rainfall": 0, "rainfall_spread": 0, "condition": "Partly Cloudy"}

    @classmethod
    def validate(cls) -> bool:
        """Validate required configuration"""
        if not cls.OPENWEATHER_API_KEY:
            logger.warning("OPENWEATHER_API_KEY not set, weather will use synthetic data")
        if not cls.OPENAI_API_KEY:
            logger.warning("OPENAI_API_KEY not set, AI endpoints will fail")
            return False
        return True

# Global config instance
config = Config()
