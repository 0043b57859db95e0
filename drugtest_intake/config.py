"""Configuration management for drug test intake."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    # Fall back to template for defaults
    template_path = Path(__file__).parent.parent / ".env.template"
    if template_path.exists():
        load_dotenv(template_path)


class Config:
    """Application configuration."""

    # Record store API settings
    RECORD_STORE_URL: str = os.getenv("RECORD_STORE_URL", "http://localhost:3000/api")
    RECORD_STORE_TOKEN: Optional[str] = os.getenv("RECORD_STORE_TOKEN")
    RECORD_STORE_TIMEOUT: float = float(os.getenv("RECORD_STORE_TIMEOUT", "10"))
    RECORD_STORE_MAX_RETRIES: int = int(os.getenv("RECORD_STORE_MAX_RETRIES", "3"))
    VERIFY_SSL: bool = os.getenv("VERIFY_SSL", "true").lower() == "true"

    # Client resolution settings
    FUZZY_MATCH_THRESHOLD: float = float(os.getenv("FUZZY_MATCH_THRESHOLD", "0.5"))
    EXACT_MATCH_LIMIT: int = int(os.getenv("EXACT_MATCH_LIMIT", "5"))
    FUZZY_MATCH_LIMIT: int = int(os.getenv("FUZZY_MATCH_LIMIT", "10"))
    CANDIDATE_POOL_SIZE: int = int(os.getenv("CANDIDATE_POOL_SIZE", "100"))

    # Test record matching settings
    AUTO_SELECT_THRESHOLD: int = int(os.getenv("AUTO_SELECT_THRESHOLD", "60"))

    @classmethod
    def is_api_configured(cls) -> bool:
        """Check if record store API credentials are configured."""
        return bool(cls.RECORD_STORE_URL and cls.RECORD_STORE_TOKEN)


config = Config()
