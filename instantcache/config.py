from pydantic_settings import BaseSettings
from pydantic import Field, validator
from dotenv import load_dotenv
from typing import List
import logging
import sys

load_dotenv()
logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    # Storage
    REDIS_URL: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")

    # Shopify catalog provider
    SHOPIFY_STORE_URL: str = Field(default="premier-concierge.myshopify.com", description="Shopify store domain")
    SHOPIFY_ADMIN_API_ACCESS_TOKEN: str = Field(default="", description="Admin API token used for the product list")
    SHOPIFY_STOREFRONT_ACCESS_TOKEN: str = Field(default="", description="Storefront API token used for collections")
    SHOPIFY_WEBHOOK_SECRET: str = Field(default="", description="Shared secret for webhook HMAC verification")
    SHOPIFY_ADMIN_API_VERSION: str = Field(default="2025-01")
    SHOPIFY_STOREFRONT_API_VERSION: str = Field(default="2024-10")
    SHOPIFY_TIMEOUT: float = Field(default=10.0, gt=0)
    SHOPIFY_MAX_RETRIES: int = Field(default=2, ge=0, le=10)
    TARGET_COLLECTIONS: List[str] = Field(
        default=["tailgate-beer", "seltzer-collection", "cocktail-kits", "party-supplies"]
    )

    # Cache tiers
    ORIGIN_TTL_MS: int = Field(default=2 * 60 * 1000, ge=1000)
    ORIGIN_RETENTION_SECONDS: int = Field(default=24 * 60 * 60, ge=60)
    CLIENT_TTL_SECONDS: float = Field(default=2 * 60, gt=0)
    COLLECTIONS_TTL_SECONDS: float = Field(default=10 * 60, gt=0)
    CLIENT_TIMEOUT_MS: int = Field(default=400, ge=1, le=60000)
    COLLECTIONS_FETCH_LIMIT: int = Field(default=50, ge=1, le=250)

    # Edge client
    EDGE_USE_REMOTE_ORIGIN: bool = Field(default=False, description="Fetch through ORIGIN_BASE_URL instead of in-process")
    ORIGIN_BASE_URL: str = Field(default="http://localhost:8000", description="Base URL of the origin cache service")
    ORIGIN_TIMEOUT: float = Field(default=10.0, gt=0)
    WEBHOOK_REFRESH_DELAY_SECONDS: float = Field(default=1.0, ge=0)

    # Background jobs
    SCHEDULER_ENABLED: bool = Field(default=True)
    WARM_ON_STARTUP: bool = Field(default=True)
    WARM_INTERVAL_MINUTES: int = Field(default=2, ge=1, le=1440)

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    @validator('REDIS_URL')
    def validate_redis_url(cls, v):
        if not v.startswith(('redis://', 'rediss://')):
            raise ValueError('REDIS_URL must be a valid Redis connection string')
        return v

    @validator('SHOPIFY_STORE_URL')
    def normalize_store_url(cls, v):
        # Stored as a bare domain; the clients add the scheme
        v = v.replace("https://", "").replace("http://", "").rstrip("/")
        if not v:
            raise ValueError('SHOPIFY_STORE_URL must not be empty')
        return v

    @validator('ORIGIN_BASE_URL')
    def validate_origin_base_url(cls, v):
        if not v.startswith(('http://', 'https://')):
            raise ValueError('ORIGIN_BASE_URL must start with http:// or https://')
        return v.rstrip("/")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

try:
    settings = Settings()
    logger.info("Configuration loaded successfully")
except Exception as e:
    logger.critical(f"Failed to load configuration: {str(e)}")
    sys.exit(1)
