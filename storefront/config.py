"""
Settings — pipeline configuration.

Loaded from environment variables with the STOREFRONT_ prefix (or a .env
file), or constructed explicitly:

    settings = Settings()                       # from environment
    settings = Settings(max_line_quantity=10)   # explicit
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline configuration shared by every engine."""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///:memory:",
        description="SQLAlchemy async URL for the cart/order stores",
    )
    max_line_quantity: int = Field(
        default=99,
        ge=1,
        description="Upper bound for a single add/set quantity",
    )
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)
    stats_window_days: int = Field(
        default=30,
        ge=1,
        description="Trailing window for shop statistics",
    )
    tracking_prefix: str = Field(default="ORD", min_length=1, pattern=r"^[A-Z0-9]+$")
    cart_write_retries: int = Field(
        default=5,
        ge=1,
        description="Optimistic version retries for SQL cart writes",
    )
    reserve_stock_on_checkout: bool = Field(
        default=True,
        description="Decrement stock while placing an order",
    )
    payment_event_memory: int = Field(
        default=10_000,
        ge=1,
        description="Most recent gateway event ids kept for deduplication",
    )
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)


__all__ = ("Settings",)
