"""Configuration loaded from the environment."""

import logging
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from .models import AuthCredentials

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://youtube-fullstack-nodejs-forbeginer.onrender.com/api"


class Settings(BaseModel):
    """Runtime settings, including the business-rule constants used by the stores."""

    api_base_url: str = DEFAULT_API_URL
    backend: Literal["api", "local"] = "api"
    database_path: str = Field(default_factory=lambda: str(Path.home() / ".supercar_shop.db"))
    session_file: str = Field(default_factory=lambda: str(Path.home() / ".supercar_shop_session.json"))
    email: Optional[str] = None
    password: Optional[str] = None
    page_size: int = Field(default=6, ge=1, description="Products per catalog page")
    prefetch_limit: int = Field(default=100, ge=1, description="Products fetched to fill the page cache")
    max_quantity_per_product: int = Field(default=2, ge=1, description="Units allowed per cart line")
    low_stock_threshold: int = Field(default=5, ge=0, description="Stock at or below this is low")
    request_timeout: float = 30.0

    @property
    def credentials(self) -> Optional[AuthCredentials]:
        if self.email and self.password:
            return AuthCredentials(email=self.email, password=self.password)
        return None

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from SUPERCAR_SHOP_* environment variables.

        Unset variables keep their defaults. Invalid values raise ValueError.
        """
        mapping = {
            "SUPERCAR_SHOP_API_URL": "api_base_url",
            "SUPERCAR_SHOP_BACKEND": "backend",
            "SUPERCAR_SHOP_DB": "database_path",
            "SUPERCAR_SHOP_SESSION_FILE": "session_file",
            "SUPERCAR_SHOP_EMAIL": "email",
            "SUPERCAR_SHOP_PASSWORD": "password",
            "SUPERCAR_SHOP_PAGE_SIZE": "page_size",
            "SUPERCAR_SHOP_PREFETCH_LIMIT": "prefetch_limit",
            "SUPERCAR_SHOP_MAX_QUANTITY": "max_quantity_per_product",
            "SUPERCAR_SHOP_LOW_STOCK": "low_stock_threshold",
            "SUPERCAR_SHOP_TIMEOUT": "request_timeout",
        }
        values = {}
        for env_name, field_name in mapping.items():
            value = os.environ.get(env_name)
            if value:
                values[field_name] = value

        try:
            settings = cls(**values)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

        logger.debug(f"Loaded settings (backend={settings.backend}, page_size={settings.page_size})")
        return settings
