"""
Configuration settings for the application.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Redis holds the persisted cart and carries cart change notifications
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CART_STORAGE_KEY: str = os.getenv("CART_STORAGE_KEY", "shirt_ecommerce_cart")
    CART_CHANNEL: str = os.getenv("CART_CHANNEL", "cart:changes")

    # Catalog backend
    CATALOG_API_URL: str = os.getenv("CATALOG_API_URL", "http://localhost:5000/api")
    CATALOG_TIMEOUT_SECONDS: float = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "10"))
    CATALOG_FALLBACK_IMAGE_URL: str = os.getenv(
        "CATALOG_FALLBACK_IMAGE_URL",
        "https://fastly.picsum.photos/id/193/200/200.jpg",
    )
    DEFAULT_SIZE_NAME: str = os.getenv("DEFAULT_SIZE_NAME", "M")
    DEFAULT_TYPE_NAME: str = os.getenv("DEFAULT_TYPE_NAME", "Casual")
    DEFAULT_PAGE_LIMIT: int = int(os.getenv("DEFAULT_PAGE_LIMIT", "12"))

    # Cart sync watcher
    CART_POLL_INTERVAL_MS: int = int(os.getenv("CART_POLL_INTERVAL_MS", "500"))
    CART_SYNC_DEBOUNCE_MS: int = int(os.getenv("CART_SYNC_DEBOUNCE_MS", "50"))

    @property
    def is_production(self) -> bool:
        """
        Check if running in production environment.
        """
        return self.ENVIRONMENT.lower() == "production"

    @property
    def poll_interval_seconds(self) -> float:
        return self.CART_POLL_INTERVAL_MS / 1000

    @property
    def debounce_seconds(self) -> float:
        return self.CART_SYNC_DEBOUNCE_MS / 1000

    def __init__(self):
        self.env = os.getenv("ENV", "dev")
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        logging.basicConfig(level=self.log_level)
        self.logger = logging.getLogger(__name__)

        self.logger.debug(
            f"Config initialized with env={self.env}, debug={self.debug}, "
            f"log_level={self.log_level}"
        )


# Create a global settings instance for import
settings = Settings()
