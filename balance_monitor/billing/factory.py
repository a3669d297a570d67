"""
Billing client factory.

Builds the configured billing client from BillingConfig.
"""

import logging

import httpx

from ..config.schemas import BillingConfig, BillingProvider
from ..errors import ConfigurationError
from ..resilience import RetryConfig
from .base import BillingClient
from .packycode import PackyCodeClient
from .yescode import YesCodeClient

logger = logging.getLogger(__name__)


def create_billing_client(
    config: BillingConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BillingClient:
    """
    Create the billing client selected by ``config.provider``.

    Args:
        config: Billing configuration
        transport: Optional httpx transport override

    Returns:
        Ready-to-use BillingClient

    Raises:
        ConfigurationError: Unsupported provider or missing credential
    """
    try:
        provider = BillingProvider(config.provider)
    except ValueError:
        supported = ", ".join(p.value for p in BillingProvider)
        raise ConfigurationError(
            f"Unsupported billing provider: {config.provider}. Supported providers: {supported}",
            details={"provider": str(config.provider)},
        ) from None
    retry_config = RetryConfig(max_retries=config.max_retries)

    if provider is BillingProvider.PACKYCODE:
        client: BillingClient = PackyCodeClient(
            config.jwt_token,
            base_url=config.resolved_base_url,
            timeout=config.timeout,
            retry_config=retry_config,
            transport=transport,
        )
    else:
        client = YesCodeClient(
            config.api_key,
            base_url=config.resolved_base_url,
            timeout=config.timeout,
            retry_config=retry_config,
            transport=transport,
        )

    logger.info(f"Billing client created: {client.name} ({client.base_url})")
    return client
