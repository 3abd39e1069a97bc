"""
Configuration Management
=======================

Centralized configuration for the restock tracker.
"""

import os
from typing import Dict, Any
from dotenv import load_dotenv

# Load environment variables from .env file at the project root
package_dir = os.path.dirname(os.path.abspath(__file__))
env_path = os.path.join(os.path.dirname(package_dir), '.env')
load_dotenv(env_path)


class Config:
    """Application configuration"""

    # Database Configuration
    DATABASE_PATH = os.getenv('DATABASE_PATH', 'data/restocked.db')

    # Fetch Configuration
    FETCH_TIMEOUT_SECONDS = float(os.getenv('FETCH_TIMEOUT_SECONDS', 30))
    FETCH_USER_AGENT = os.getenv(
        'FETCH_USER_AGENT',
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/124.0 Safari/537.36'
    )

    # Tracking Configuration
    TRACKING_CONCURRENCY = int(os.getenv('TRACKING_CONCURRENCY', 5))
    TRACKING_STALE_MINUTES = int(os.getenv('TRACKING_STALE_MINUTES', 30))

    # Outward alert gating
    STOCKCHECK_NOTIFY_CONFIDENCE_MIN = int(os.getenv('STOCKCHECK_NOTIFY_CONFIDENCE_MIN', 70))
    TELEGRAM_ALERT_COOLDOWN_SECONDS = int(os.getenv('TELEGRAM_ALERT_COOLDOWN_SECONDS', 60 * 60))

    # Manual "check now" rate limit (per user and tracked item)
    CHECK_NOW_COOLDOWN_SECONDS = int(os.getenv('CHECK_NOW_COOLDOWN_SECONDS', 60))

    # Price plausibility band for free-text candidates
    PRICE_MIN = float(os.getenv('PRICE_MIN', 0.10))
    PRICE_MAX = float(os.getenv('PRICE_MAX', 10000))

    # Telegram delivery
    TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN')
    TELEGRAM_CHAT_ID = os.getenv('TELEGRAM_CHAT_ID')

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    @classmethod
    def telegram_configured(cls) -> bool:
        return bool(cls.TELEGRAM_BOT_TOKEN and cls.TELEGRAM_CHAT_ID)

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        """Export configuration as dictionary (secrets omitted)"""
        return {
            'database_path': cls.DATABASE_PATH,
            'fetch_timeout_seconds': cls.FETCH_TIMEOUT_SECONDS,
            'tracking_concurrency': cls.TRACKING_CONCURRENCY,
            'tracking_stale_minutes': cls.TRACKING_STALE_MINUTES,
            'notify_confidence_min': cls.STOCKCHECK_NOTIFY_CONFIDENCE_MIN,
            'alert_cooldown_seconds': cls.TELEGRAM_ALERT_COOLDOWN_SECONDS,
            'check_now_cooldown_seconds': cls.CHECK_NOW_COOLDOWN_SECONDS,
            'price_min': cls.PRICE_MIN,
            'price_max': cls.PRICE_MAX,
            'telegram_configured': cls.telegram_configured(),
            'log_level': cls.LOG_LEVEL,
        }


# Global config instance
config = Config()
