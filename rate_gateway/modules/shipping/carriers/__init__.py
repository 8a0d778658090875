"""
Carrier Registry and Factory

- CarrierRegistry holds live carrier instances for one rate service
- register_carrier_class records adapter implementations by name
- CarrierFactory builds configured adapters for the carriers enabled in settings
"""
from typing import Dict, Iterator, List, Optional, Type
import logging

from rate_gateway.core.config import Settings, settings as default_settings
from rate_gateway.core.exceptions import CarrierNotFoundError, DuplicateCarrierError
from rate_gateway.modules.shipping.carriers.base import BaseCarrier

logger = logging.getLogger(__name__)

DUPLICATE_REPLACE = "replace"
DUPLICATE_REJECT = "reject"

# Registry of carrier implementations
_CARRIER_CLASSES: Dict[str, Type[BaseCarrier]] = {}


def register_carrier_class(name: str):
    """
    Decorator to register a carrier implementation.

    Usage:
        @register_carrier_class("ups")
        class UPSCarrier(BaseCarrier):
            ...
    """
    def decorator(cls: Type[BaseCarrier]):
        _CARRIER_CLASSES[name.lower()] = cls
        logger.debug(f"Registered carrier class: {name} -> {cls.__name__}")
        return cls
    return decorator


class CarrierRegistry:
    """
    Ordered name -> carrier mapping.

    Iteration order is registration order. Replacing a carrier keeps the
    slot of the one it replaces.
    """

    def __init__(self, on_duplicate: str = DUPLICATE_REPLACE):
        if on_duplicate not in (DUPLICATE_REPLACE, DUPLICATE_REJECT):
            raise ValueError(f"on_duplicate must be 'replace' or 'reject', got {on_duplicate!r}")
        self.on_duplicate = on_duplicate
        self._carriers: Dict[str, BaseCarrier] = {}

    def register(self, carrier: BaseCarrier) -> None:
        name = carrier.name
        if name in self._carriers:
            if self.on_duplicate == DUPLICATE_REJECT:
                raise DuplicateCarrierError(name)
            logger.warning(f"[RATES] Carrier {name} already registered, replacing")
        self._carriers[name] = carrier
        logger.info(f"[RATES] Registered carrier: {name}")

    def unregister(self, name: str) -> bool:
        removed = self._carriers.pop(name, None)
        if removed is not None:
            logger.info(f"[RATES] Unregistered carrier: {name}")
        return removed is not None

    def get(self, name: str) -> Optional[BaseCarrier]:
        return self._carriers.get(name)

    def names(self) -> List[str]:
        return list(self._carriers.keys())

    def all(self) -> List[BaseCarrier]:
        return list(self._carriers.values())

    def __contains__(self, name: object) -> bool:
        return name in self._carriers

    def __len__(self) -> int:
        return len(self._carriers)

    def __iter__(self) -> Iterator[BaseCarrier]:
        return iter(self.all())


class CarrierFactory:
    """Factory for creating configured carrier instances."""

    @classmethod
    def create(cls, name: str, settings: Optional[Settings] = None) -> BaseCarrier:
        """
        Build one carrier from settings.

        Raises:
            CarrierNotFoundError: No implementation is registered under `name`
        """
        carrier_cls = _CARRIER_CLASSES.get(name.lower())
        if not carrier_cls:
            raise CarrierNotFoundError(name)
        return carrier_cls(settings=settings or default_settings)

    @classmethod
    def create_enabled(cls, settings: Optional[Settings] = None) -> List[BaseCarrier]:
        """Build every carrier listed in ENABLED_CARRIERS, skipping unknown names."""
        settings = settings or default_settings
        carriers = []
        for name in settings.ENABLED_CARRIERS:
            if name not in _CARRIER_CLASSES:
                logger.warning(f"No implementation registered for carrier: {name}")
                continue
            carriers.append(cls.create(name, settings))
        return carriers

    @classmethod
    def get_registered_carriers(cls) -> List[str]:
        """Get list of all registered carrier names."""
        return list(_CARRIER_CLASSES.keys())


# Import carriers to trigger registration
# These imports must be at the bottom to avoid circular imports
from rate_gateway.modules.shipping.carriers.ups import UPSCarrier  # noqa: E402, F401
