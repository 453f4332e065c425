"""
Exchange Service Factory.

============================================================
PURPOSE
============================================================
Factory pattern for creating exchange service instances.

FEATURES:
- Centralized service creation
- Configuration injection (ClientConfig, environment by default)
- Service registry for extension

============================================================
USAGE
============================================================
```python
# Create service by exchange ID (config from environment)
service = ServiceFactory.create("gdax")

# Create with explicit config and an offline transport
config = ClientConfig(exchange_id="koinex")
service = ServiceFactory.create("koinex", config=config, transport=MockTransport())

# Create all services
services = ServiceFactory.create_all(["gdax", "koinex"])
```

============================================================
"""

import dataclasses
import logging
from typing import Any, Dict, List, Optional, Type

from .config import ClientConfig
from .errors import ConfigurationError
from .exchanges.base import ExchangeService
from .exchanges.gdax import GDAXService
from .exchanges.koinex import KoinexService


logger = logging.getLogger(__name__)


# ClientConfig fields that keyword arguments may override
CONFIG_OVERRIDES = ("credentials", "preference", "timeout_seconds")


class ServiceFactory:
    """
    Factory for creating exchange services.

    Keyword arguments naming a CONFIG_OVERRIDES field override a copy of
    the config; all others are passed to the service constructor.
    """

    _registry: Dict[str, Type[ExchangeService]] = {
        "gdax": GDAXService,
        "koinex": KoinexService,
    }

    @classmethod
    def register(cls, exchange_id: str, service_class: Type[ExchangeService]) -> None:
        """
        Register a service class.

        Args:
            exchange_id: Exchange identifier
            service_class: ExchangeService subclass
        """
        cls._registry[exchange_id.lower()] = service_class
        logger.debug(f"Registered exchange service: {exchange_id.lower()}")

    @classmethod
    def unregister(cls, exchange_id: str) -> None:
        """Unregister a service class."""
        cls._registry.pop(exchange_id.lower(), None)

    @classmethod
    def create(
        cls,
        exchange_id: str,
        config: Optional[ClientConfig] = None,
        **kwargs,
    ) -> ExchangeService:
        """
        Create an exchange service.

        Args:
            exchange_id: Exchange identifier
            config: Client configuration (default: from environment)
            **kwargs: Config overrides or service constructor arguments

        Returns:
            ExchangeService instance

        Raises:
            ValueError: If exchange not supported
            ConfigurationError: If an override makes the config invalid
        """
        exchange_id = exchange_id.lower()
        service_class = cls._registry.get(exchange_id)
        if service_class is None:
            raise ValueError(f"Unsupported exchange: {exchange_id}")

        if config is None:
            config = ClientConfig.from_env(exchange_id)

        service_kwargs: Dict[str, Any] = dict(config.options)
        overrides: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if key in CONFIG_OVERRIDES:
                overrides[key] = value
            else:
                service_kwargs[key] = value
        if overrides:
            config = dataclasses.replace(config, **overrides)

        return service_class(
            config.preference.to_user_preference(),
            credentials=config.credentials,
            timeout_seconds=config.timeout_seconds,
            **service_kwargs,
        )

    @classmethod
    def create_all(
        cls,
        exchange_ids: List[str],
        config_map: Optional[Dict[str, ClientConfig]] = None,
        **common_kwargs,
    ) -> Dict[str, ExchangeService]:
        """
        Create multiple services.

        Args:
            exchange_ids: List of exchange identifiers
            config_map: Optional config per exchange
            **common_kwargs: Common arguments for all services

        Returns:
            Dict of exchange_id -> service (failures are logged and skipped)
        """
        config_map = config_map or {}
        services = {}

        for exchange_id in exchange_ids:
            try:
                services[exchange_id] = cls.create(
                    exchange_id,
                    config=config_map.get(exchange_id),
                    **common_kwargs,
                )
            except (ValueError, ConfigurationError) as e:
                logger.error(f"Failed to create service for {exchange_id}: {e}")

        return services

    @classmethod
    def list_supported(cls) -> List[str]:
        """List supported exchanges."""
        return sorted(cls._registry)


def create_service(
    exchange_id: str,
    config: Optional[ClientConfig] = None,
    **kwargs,
) -> ExchangeService:
    """Convenience wrapper around ServiceFactory.create."""
    return ServiceFactory.create(exchange_id, config=config, **kwargs)


__all__ = [
    "ServiceFactory",
    "create_service",
]
