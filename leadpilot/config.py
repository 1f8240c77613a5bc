"""
LeadPilot Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)


class Config:
    """Application configuration."""

    # Storage backend: 'local' (JSON file) or 'postgres' (remote document store)
    STORE_BACKEND = os.getenv('STORE_BACKEND', 'local').lower()
    if STORE_BACKEND not in ('local', 'postgres'):
        _logger.critical(f"STORE_BACKEND={STORE_BACKEND!r} is not supported, use 'local' or 'postgres'.")
        raise ValueError(f"STORE_BACKEND must be 'local' or 'postgres', got {STORE_BACKEND!r}")

    # Database: only required for the postgres backend; never hardcode credentials here
    DATABASE_URL = os.getenv('DATABASE_URL')
    if STORE_BACKEND == 'postgres' and not DATABASE_URL:
        _logger.critical("DATABASE_URL is not set but STORE_BACKEND=postgres. Copy .env.example to .env and configure it.")
        raise ValueError("DATABASE_URL environment variable is not set. Copy .env.example to .env and configure it.")

    DATA_DIR = Path(os.getenv('DATA_DIR', str(Path(__file__).parent.parent / 'data')))

    # Timezone used for business hours and contact dates
    TIMEZONE = os.getenv('TIMEZONE', 'Europe/Istanbul')

    # Agent cycle
    AGENT_TICK_SECONDS = float(os.getenv('AGENT_TICK_SECONDS', '20'))
    AGENT_DAILY_LIMIT = int(os.getenv('AGENT_DAILY_LIMIT', '50'))
    BUSINESS_HOURS_START = int(os.getenv('BUSINESS_HOURS_START', '9'))
    BUSINESS_HOURS_END = int(os.getenv('BUSINESS_HOURS_END', '18'))
    REPLY_ADMISSION_PROBABILITY = float(os.getenv('REPLY_ADMISSION_PROBABILITY', '0.3'))
    PRIORITY_DISTRICT_PROBABILITY = float(os.getenv('PRIORITY_DISTRICT_PROBABILITY', '0.5'))
    AI_COST_PER_CALL = float(os.getenv('AI_COST_PER_CALL', '0.0004'))

    # AI Configuration
    # DeepSeek (routine tasks: simulated replies, social analysis)
    DEEPSEEK_API_KEY = os.getenv('DEEPSEEK_API_KEY', '')
    DEEPSEEK_BASE_URL = os.getenv('DEEPSEEK_BASE_URL', 'https://api.deepseek.com')
    DEFAULT_AI_MODEL = os.getenv('DEFAULT_AI_MODEL', 'claude')
    # Claude (search-grounded discovery, drafting)
    ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '')
    CLAUDE_MODEL = os.getenv('CLAUDE_MODEL', 'claude-sonnet-4-5')

    # Email Configuration
    SMTP_HOST = os.getenv('SMTP_HOST', '')
    SMTP_PORT = int(os.getenv('SMTP_PORT', '587'))
    SMTP_USERNAME = os.getenv('SMTP_USERNAME', '')
    SMTP_PASSWORD = os.getenv('SMTP_PASSWORD', '')
    MAIL_FROM = os.getenv('MAIL_FROM', '')
    MAIL_DRY_RUN = os.getenv('MAIL_DRY_RUN', 'true').lower() in ('1', 'true', 'yes')


# Singleton instance
config = Config()
