"""
Shipping Module

- Carrier-agnostic rate request/response models
- BaseCarrier interface and carrier adapters (see .carriers)
- RateShoppingService for multi-carrier quotes (see .service)
"""
from rate_gateway.modules.shipping.models import (
    Address,
    CarrierError,
    CarrierResult,
    Package,
    RateQuote,
    RateRequest,
    RateResponse,
    ServiceLevel,
)

__all__ = [
    "Address",
    "CarrierError",
    "CarrierResult",
    "Package",
    "RateQuote",
    "RateRequest",
    "RateResponse",
    "ServiceLevel",
]
