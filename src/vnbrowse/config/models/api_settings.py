"""Catalog API configuration model.

This module contains the configuration model for the remote catalog
connection: endpoint, timeouts, rate limiting and the API token.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from vnbrowse.shared.constants import APIConfig


class ApiSettings(BaseModel):
    """Catalog API configuration.

    Security: token is masked in __repr__ so it never reaches logs.
    """

    base_url: str = Field(
        default=APIConfig.BASE_URL,
        description="Root URL of the catalog API",
    )
    timeout: float = Field(
        default=APIConfig.TIMEOUT,
        gt=0,
        description="Total request timeout in seconds",
    )
    user_agent: str = Field(
        default=APIConfig.USER_AGENT,
        description="User-Agent header sent with every request",
    )
    rate_limit_requests: int = Field(
        default=APIConfig.RATE_LIMIT_REQUESTS,
        gt=0,
        description="Requests allowed per rate limit period",
    )
    rate_limit_period: float = Field(
        default=APIConfig.RATE_LIMIT_PERIOD,
        gt=0,
        description="Rate limit period in seconds",
    )

    # API token (sensitive - hidden from repr)
    token: str = Field(
        default="",
        repr=False,
        description="Personal API token used for list access",
    )

    def __repr__(self) -> str:
        masked_token = "****" if self.token else "[empty]"
        return (
            f"ApiSettings("
            f"base_url={self.base_url!r}, "
            f"timeout={self.timeout}, "
            f"token={masked_token})"
        )


__all__ = ["ApiSettings"]
