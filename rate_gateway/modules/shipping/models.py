"""
Carrier-Agnostic Shipping Models

Canonical request/response shapes exposed at the gateway boundary. Carriers
translate to and from their own wire formats; nothing in here knows about
UPS field names or HTTP.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from rate_gateway.core.utils import utcnow


class ServiceLevel(str, Enum):
    """Normalized service taxonomy every carrier service code maps into."""
    OVERNIGHT = "OVERNIGHT"
    TWO_DAY = "TWO_DAY"
    GROUND = "GROUND"
    EXPRESS = "EXPRESS"
    ECONOMY = "ECONOMY"


DEFAULT_SERVICE_LEVEL = ServiceLevel.GROUND
DEFAULT_CURRENCY = "USD"


@dataclass(frozen=True)
class Address:
    """Postal address, carried unchanged through orchestration."""
    address_line1: str
    city: str
    state_province: str
    postal_code: str
    country_code: str  # ISO 3166-1 alpha-2
    address_line2: Optional[str] = None

    @property
    def street_lines(self) -> List[str]:
        lines = [self.address_line1]
        if self.address_line2:
            lines.append(self.address_line2)
        return lines


@dataclass(frozen=True)
class Package:
    """Package dimensions and weight."""
    length: float
    width: float
    height: float
    weight: float
    dimension_unit: str = "IN"  # IN or CM
    weight_unit: str = "LBS"  # LBS or KGS


@dataclass(frozen=True)
class RateRequest:
    """Canonical rate request; the only shape the rate service accepts."""
    origin: Address
    destination: Address
    packages: Tuple[Package, ...]
    service_level: Optional[ServiceLevel] = None


@dataclass(frozen=True)
class RateQuote:
    """A single normalized quote for one carrier service."""
    carrier: str
    service_level: ServiceLevel
    base_charge: float
    final_charge: float
    currency: str = DEFAULT_CURRENCY
    discount_amount: Optional[float] = None
    estimated_delivery: Optional[datetime] = None
    warnings: Tuple[str, ...] = ()
    service_code: Optional[str] = None
    service_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "carrier": self.carrier,
            "service_level": self.service_level.value,
            "base_charge": self.base_charge,
            "final_charge": self.final_charge,
            "currency": self.currency,
        }
        if self.discount_amount is not None:
            data["discount_amount"] = self.discount_amount
        if self.estimated_delivery is not None:
            data["estimated_delivery"] = self.estimated_delivery.isoformat()
        if self.warnings:
            data["warnings"] = list(self.warnings)
        if self.service_code:
            data["service_code"] = self.service_code
        if self.service_name:
            data["service_name"] = self.service_name
        return data


@dataclass(frozen=True)
class CarrierError:
    """Structured failure of one carrier. A value, never raised."""
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    carrier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.carrier:
            data["carrier"] = self.carrier
        if self.details:
            data["details"] = self.details
        return data


@dataclass
class RateResponse:
    """Aggregated rate response."""
    quotes: List[RateQuote] = field(default_factory=list)
    errors: Optional[List[CarrierError]] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "quotes": [quote.to_dict() for quote in self.quotes],
        }
        if self.errors:
            data["errors"] = [error.to_dict() for error in self.errors]
        return data


@dataclass
class CarrierResult:
    """Tagged success/failure result for single-carrier calls."""
    success: bool
    data: Optional[RateResponse] = None
    error: Optional[CarrierError] = None

    @classmethod
    def ok(cls, data: RateResponse) -> "CarrierResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: CarrierError) -> "CarrierResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success and self.data is not None:
            return {"success": True, "data": self.data.to_dict()}
        return {"success": False, "error": self.error.to_dict() if self.error else None}
