"""
Core configuration and settings for the curator pipeline.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Define application paths
HOME_DIR = Path.home()
CURATOR_DATA_DIR = Path(os.getenv("CURATOR_HOME", HOME_DIR / ".curator"))
CURATOR_DB_PATH = CURATOR_DATA_DIR / "data" / "curator.db"
CURATOR_LOGS_DIR = CURATOR_DATA_DIR / "data" / "logs"
CURATOR_CONFIG_DIR = CURATOR_DATA_DIR / "config"


@dataclass
class Settings:
    """Application settings."""

    # Application
    app_name: str = "Curator Content Intelligence"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"

    # Database
    database_url: str = f"sqlite:///{CURATOR_DB_PATH}"

    # Application data directories
    data_dir: str = str(CURATOR_DATA_DIR)
    logs_dir: str = str(CURATOR_LOGS_DIR)
    config_dir: str = str(CURATOR_CONFIG_DIR)

    # YouTube API
    youtube_api_key: str = ""
    youtube_quota_limit: int = 10000
    youtube_timeout: int = 10  # seconds
    youtube_requests_per_second: float = 5.0

    # Taxonomy tagging
    taxonomy_cache_ttl: int = 300  # 5 minutes
    tag_match_threshold: float = 0.6
    tag_max_name_matches: int = 3
    tag_fallback_slug: str = "fundamentals"

    # Coverage targets
    coverage_target_per_technique: int = 100
    library_target_total: int = 3000
    coverage_top_n: int = 10

    # Acquisition
    acquisition_max_results: int = 25
    min_duration_seconds: int = 70
    default_acceptance_score: float = 75.0
    query_delay_seconds: float = 0.3

    # Profile building
    profile_window: int = 100
    profile_min_samples: int = 5
    profile_active_days: int = 30
    profile_user_delay_seconds: float = 0.1

    def __post_init__(self):
        """Load settings from environment variables and ensure directories exist."""
        # Ensure ~/.curator directories exist
        CURATOR_DATA_DIR.mkdir(parents=True, exist_ok=True)
        CURATOR_LOGS_DIR.mkdir(parents=True, exist_ok=True)
        CURATOR_CONFIG_DIR.mkdir(parents=True, exist_ok=True)

        # Override with environment variables
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.log_level = os.getenv("LOG_LEVEL", self.log_level).upper()
        self.api_host = os.getenv("API_HOST", self.api_host)
        self.api_port = int(os.getenv("API_PORT", self.api_port))

        env_db_url = os.getenv("DATABASE_URL")
        if env_db_url:
            self.database_url = env_db_url

        self.youtube_api_key = os.getenv("YOUTUBE_API_KEY", self.youtube_api_key)
        self.youtube_quota_limit = int(
            os.getenv("YOUTUBE_QUOTA_LIMIT", self.youtube_quota_limit)
        )
        self.youtube_timeout = int(os.getenv("YOUTUBE_TIMEOUT", self.youtube_timeout))
        self.youtube_requests_per_second = float(
            os.getenv("YOUTUBE_REQUESTS_PER_SECOND", self.youtube_requests_per_second)
        )

        self.taxonomy_cache_ttl = int(
            os.getenv("TAXONOMY_CACHE_TTL", self.taxonomy_cache_ttl)
        )
        self.tag_match_threshold = float(
            os.getenv("TAG_MATCH_THRESHOLD", self.tag_match_threshold)
        )
        self.tag_max_name_matches = int(
            os.getenv("TAG_MAX_NAME_MATCHES", self.tag_max_name_matches)
        )
        self.tag_fallback_slug = os.getenv("TAG_FALLBACK_SLUG", self.tag_fallback_slug)

        self.coverage_target_per_technique = int(
            os.getenv(
                "COVERAGE_TARGET_PER_TECHNIQUE", self.coverage_target_per_technique
            )
        )
        self.library_target_total = int(
            os.getenv("LIBRARY_TARGET_TOTAL", self.library_target_total)
        )
        self.coverage_top_n = int(os.getenv("COVERAGE_TOP_N", self.coverage_top_n))

        self.acquisition_max_results = int(
            os.getenv("ACQUISITION_MAX_RESULTS", self.acquisition_max_results)
        )
        self.min_duration_seconds = int(
            os.getenv("MIN_DURATION_SECONDS", self.min_duration_seconds)
        )
        self.default_acceptance_score = float(
            os.getenv("DEFAULT_ACCEPTANCE_SCORE", self.default_acceptance_score)
        )
        self.query_delay_seconds = float(
            os.getenv("QUERY_DELAY_SECONDS", self.query_delay_seconds)
        )

        self.profile_window = int(os.getenv("PROFILE_WINDOW", self.profile_window))
        self.profile_min_samples = int(
            os.getenv("PROFILE_MIN_SAMPLES", self.profile_min_samples)
        )
        self.profile_active_days = int(
            os.getenv("PROFILE_ACTIVE_DAYS", self.profile_active_days)
        )
        self.profile_user_delay_seconds = float(
            os.getenv("PROFILE_USER_DELAY_SECONDS", self.profile_user_delay_seconds)
        )


# Global settings instance
settings = Settings()
