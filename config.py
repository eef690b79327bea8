"""
Global configuration for the Engagement Forecast Engine.

Only environment-driven settings and defaults live here. Platform
industry standards come from platform_profiles.yaml.

API keys can be stored in database (preferred) or .env (fallback).
"""

import logging
import os
import sqlite3
from pathlib import Path
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()


class ConfigurationError(Exception):
    """Raised at construction time when a required setting is missing."""
    pass


# ── Paths ──
PROJECT_ROOT = Path(__file__).parent
DATA_DIR = PROJECT_ROOT / "data"
DB_PATH = Path(os.getenv("ENGINE_DB_PATH") or DATA_DIR / "engagement_engine.db")
PLATFORM_PROFILES_PATH = PROJECT_ROOT / "platform_profiles.yaml"

# Ensure data directory exists
DATA_DIR.mkdir(exist_ok=True)


# api_credentials.service -> environment fallback
CREDENTIAL_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
}


def get_api_key(service: str) -> str:
    """
    Look up a credential in the api_credentials table, then the environment.

    The only credential this engine uses is the insight service's OpenAI
    key (service 'openai', env OPENAI_API_KEY); other names return "".
    """
    if DB_PATH.exists():
        conn = sqlite3.connect(str(DB_PATH))
        try:
            row = conn.execute(
                "SELECT api_key FROM api_credentials WHERE service = ?", (service,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.debug(f"Credential lookup for '{service}' failed: {e}")
            row = None
        finally:
            conn.close()

        if row and row[0]:
            logger.debug(f"Using stored '{service}' credential")
            return row[0]

    env_var = CREDENTIAL_ENV_VARS.get(service)
    return os.getenv(env_var, "") if env_var else ""


# ── OpenAI (insight phrasing only, never statistics) ──
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")  # Fallback, use get_api_key('openai')
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_MAX_TOKENS = int(os.getenv("OPENAI_MAX_TOKENS", "3000"))
PREDICTION_TEMPERATURE = 0.3
INSIGHT_TEMPERATURE = 0.5

# Single-shot calls: a timeout routes straight to the fallback path
INSIGHT_TIMEOUT_SECONDS = float(os.getenv("INSIGHT_TIMEOUT_SECONDS", "30"))
# When true, a missing key is fatal instead of degrading to fallbacks
REQUIRE_INSIGHT_SERVICE = os.getenv("REQUIRE_INSIGHT_SERVICE", "false").lower() == "true"

# ── Analysis Windows ──
BENCHMARK_SAMPLE_SIZE = int(os.getenv("BENCHMARK_SAMPLE_SIZE", "500"))
ANALYSIS_SAMPLE_SIZE = int(os.getenv("ANALYSIS_SAMPLE_SIZE", "1000"))
MAX_PREDICTION_CATEGORIES = 10

# ── Scheduler ──
SCHEDULER_INTERVAL_MINUTES = int(os.getenv("SCHEDULER_INTERVAL_MINUTES", "360"))
SCHEDULER_MAX_WORKERS = int(os.getenv("SCHEDULER_MAX_WORKERS", "4"))

# ── API Server ──
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "5000"))

# ── Logging ──
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
