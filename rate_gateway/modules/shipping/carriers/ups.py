"""
UPS Carrier Implementation

Rating via the UPS REST API with OAuth 2.0 client credentials:
- Shop request (all services), optionally with negotiated rates
- Multi-package charges summed per service
- Service codes normalized to ServiceLevel
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from rate_gateway.core.config import Settings, settings as default_settings
from rate_gateway.core.exceptions import (
    CarrierResponseError,
    ErrorCode,
    TransportError,
)
from rate_gateway.core.http_client import RetryConfig, TransportClient, dumps_for_log
from rate_gateway.core.token_cache import TokenCache
from rate_gateway.core.utils import round_money, utcnow
from rate_gateway.modules.shipping.carriers import register_carrier_class
from rate_gateway.modules.shipping.carriers.base import BaseCarrier
from rate_gateway.modules.shipping.models import (
    DEFAULT_CURRENCY,
    DEFAULT_SERVICE_LEVEL,
    Address,
    Package,
    RateQuote,
    RateRequest,
    RateResponse,
    ServiceLevel,
)

logger = logging.getLogger(__name__)

# UPS API URLs
UPS_PRODUCTION_URL = "https://onlinetools.ups.com"
UPS_SANDBOX_URL = "https://wwwcie.ups.com"

RATING_SUBVERSION = "2407"
PACKAGING_TYPE_CUSTOMER_SUPPLIED = "02"
SUCCESS_STATUS_CODE = "0"
DEFAULT_ARRIVAL_TIME = "1800"

UPS_SERVICE_LEVEL_MAP: Dict[str, ServiceLevel] = {
    # Domestic US
    "01": ServiceLevel.OVERNIGHT,  # Next Day Air
    "02": ServiceLevel.TWO_DAY,  # 2nd Day Air
    "03": ServiceLevel.GROUND,  # Ground
    "12": ServiceLevel.ECONOMY,  # 3 Day Select
    "13": ServiceLevel.EXPRESS,  # Next Day Air Saver
    "14": ServiceLevel.EXPRESS,  # Next Day Air Early
    "59": ServiceLevel.TWO_DAY,  # 2nd Day Air A.M.
    # International
    "07": ServiceLevel.EXPRESS,  # Worldwide Express
    "08": ServiceLevel.ECONOMY,  # Worldwide Expedited
    "11": ServiceLevel.GROUND,  # Standard
    "54": ServiceLevel.EXPRESS,  # Worldwide Express Plus
    "65": ServiceLevel.EXPRESS,  # Saver
}

UPS_SERVICE_NAMES: Dict[str, str] = {
    "01": "UPS Next Day Air",
    "02": "UPS 2nd Day Air",
    "03": "UPS Ground",
    "12": "UPS 3 Day Select",
    "13": "UPS Next Day Air Saver",
    "14": "UPS Next Day Air Early",
    "59": "UPS 2nd Day Air A.M.",
    "07": "UPS Worldwide Express",
    "08": "UPS Worldwide Expedited",
    "11": "UPS Standard",
    "54": "UPS Worldwide Express Plus",
    "65": "UPS Saver",
}


@dataclass
class UPSCredentials:
    """UPS API credentials."""
    client_id: str
    client_secret: str
    account_number: str = ""
    use_sandbox: bool = False
    base_url_override: Optional[str] = None

    @property
    def base_url(self) -> str:
        if self.base_url_override:
            return self.base_url_override.rstrip("/")
        return UPS_SANDBOX_URL if self.use_sandbox else UPS_PRODUCTION_URL

    @property
    def negotiated_rates(self) -> bool:
        return bool(self.account_number)

    @classmethod
    def from_settings(cls, settings: Settings) -> "UPSCredentials":
        return cls(
            client_id=settings.UPS_CLIENT_ID or "",
            client_secret=settings.UPS_CLIENT_SECRET or "",
            account_number=settings.UPS_ACCOUNT_NUMBER or "",
            use_sandbox=settings.UPS_USE_SANDBOX,
            base_url_override=settings.UPS_BASE_URL,
        )


def map_service_level(service_code: str) -> ServiceLevel:
    """Map a UPS service code to ServiceLevel; unknown codes are GROUND."""
    return UPS_SERVICE_LEVEL_MAP.get(service_code, DEFAULT_SERVICE_LEVEL)


def _as_list(value: Any) -> List[Any]:
    """UPS returns a bare object when a collection has one element."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _format_number(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _money(charge: Optional[Dict[str, Any]]) -> Optional[float]:
    if not charge:
        return None
    return float(charge.get("MonetaryValue", 0) or 0)


@register_carrier_class("ups")
class UPSCarrier(BaseCarrier):
    """
    UPS shipping carrier implementation.

    Owns one TransportClient (shared by the token exchange and the rating
    call) and one TokenCache. Both can be injected for tests.
    """

    def __init__(
        self,
        credentials: Optional[UPSCredentials] = None,
        http_client: Optional[TransportClient] = None,
        token_cache: Optional[TokenCache] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or default_settings
        self.credentials = credentials or UPSCredentials.from_settings(self._settings)
        self.rating_path = self._settings.UPS_RATING_PATH

        self._http_client = http_client or TransportClient(
            self.credentials.base_url,
            timeout=self._settings.HTTP_TIMEOUT_SECONDS,
            retry_config=RetryConfig(
                max_attempts=self._settings.HTTP_RETRY_ATTEMPTS,
                base_delay_ms=self._settings.HTTP_RETRY_DELAY_MS,
            ),
        )
        self._token_cache = token_cache or TokenCache(
            client_id=self.credentials.client_id,
            client_secret=self.credentials.client_secret,
            http_client=self._http_client,
            token_path=self._settings.UPS_TOKEN_PATH,
            refresh_buffer_seconds=self._settings.UPS_TOKEN_REFRESH_BUFFER_SECONDS,
        )

    @property
    def name(self) -> str:
        return "ups"

    @property
    def token_cache(self) -> TokenCache:
        return self._token_cache

    async def close(self) -> None:
        await self._http_client.close()

    async def get_rates(self, request: RateRequest) -> RateResponse:
        """Get shipping rates from UPS."""
        self.validate_request(request)

        payload = self.build_rate_request(request)
        token = await self._token_cache.get_token()

        logger.info(
            f"[UPS] Requesting rates {request.origin.postal_code} -> "
            f"{request.destination.postal_code} ({len(request.packages)} package(s))"
        )
        logger.debug(f"[UPS] Rate request payload: {dumps_for_log(payload)}")

        try:
            body = await self._http_client.post(
                self.rating_path,
                json=payload,
                bearer_token=token,
                headers={
                    "transId": uuid.uuid4().hex,
                    "transactionSrc": "rate-gateway",
                },
            )
        except TransportError as e:
            if e.code == ErrorCode.HTTP_401:
                # Token was revoked or expired early; force a fresh exchange next time
                self._token_cache.clear_cache()
            raise

        response = self.parse_rate_response(body)
        if request.service_level is not None:
            response.quotes = [
                quote for quote in response.quotes
                if quote.service_level == request.service_level
            ]

        logger.info(f"[UPS] Received {len(response.quotes)} quote(s)")
        return response

    # ==================== Request building ====================

    def build_rate_request(self, request: RateRequest) -> Dict[str, Any]:
        """Translate the canonical request into the UPS Shop rating body."""
        shipper = self._format_address(request.origin)
        if self.credentials.account_number:
            shipper["ShipperNumber"] = self.credentials.account_number

        shipment: Dict[str, Any] = {
            "Shipper": shipper,
            "ShipTo": self._format_address(request.destination),
            "ShipFrom": self._format_address(request.origin),
            "Package": [self._format_package(pkg) for pkg in request.packages],
        }
        if self.credentials.negotiated_rates:
            shipment["ShipmentRatingOptions"] = {"NegotiatedRatesIndicator": "Y"}

        return {
            "RateRequest": {
                "Request": {
                    "RequestOption": "Shop",
                    "SubVersion": RATING_SUBVERSION,
                },
                "Shipment": shipment,
            }
        }

    @staticmethod
    def _format_address(address: Address) -> Dict[str, Any]:
        return {
            "Address": {
                "AddressLine": address.street_lines,
                "City": address.city,
                "StateProvinceCode": address.state_province,
                "PostalCode": address.postal_code,
                "CountryCode": address.country_code,
            }
        }

    @staticmethod
    def _format_package(package: Package) -> Dict[str, Any]:
        return {
            "PackagingType": {"Code": PACKAGING_TYPE_CUSTOMER_SUPPLIED},
            "Dimensions": {
                "UnitOfMeasurement": {"Code": package.dimension_unit},
                "Length": _format_number(package.length),
                "Width": _format_number(package.width),
                "Height": _format_number(package.height),
            },
            "PackageWeight": {
                "UnitOfMeasurement": {"Code": package.weight_unit},
                "Weight": _format_number(package.weight),
            },
        }

    # ==================== Response parsing ====================

    def parse_rate_response(self, body: Any) -> RateResponse:
        """
        Normalize a UPS rating response.

        Raises:
            CarrierResponseError: Missing status structure or a non-success status
        """
        rate_response = body.get("RateResponse") if isinstance(body, dict) else None
        response = rate_response.get("Response") if isinstance(rate_response, dict) else None
        status = response.get("ResponseStatus") if isinstance(response, dict) else None

        if not isinstance(status, dict):
            raise CarrierResponseError(
                "Invalid UPS response structure",
                details={"missing": "RateResponse.Response.ResponseStatus"},
            )

        status_code = str(status.get("Code", ""))
        description = status.get("Description", "")
        if status_code != SUCCESS_STATUS_CODE:
            raise CarrierResponseError(
                f"UPS API error: {description}",
                details={"carrier_code": status_code, "description": description},
            )

        warnings = tuple(
            f"{alert.get('Code', '')}: {alert.get('Description', '')}"
            for alert in _as_list(response.get("Alert"))
            if isinstance(alert, dict)
        )

        quotes = []
        for shipment in _as_list(rate_response.get("RatedShipment")):
            try:
                quotes.append(self._parse_rated_shipment(shipment, warnings))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                service = shipment.get("Service") if isinstance(shipment, dict) else None
                service_code = service.get("Code") if isinstance(service, dict) else None
                logger.warning(f"[UPS] Skipping rate for service {service_code}: {e}")

        return RateResponse(quotes=quotes, timestamp=utcnow())

    def _parse_rated_shipment(self, shipment: Dict[str, Any], warnings: Tuple[str, ...]) -> RateQuote:
        service = shipment.get("Service")
        if not isinstance(service, dict) or service.get("Code") is None:
            raise ValueError("rated shipment has no Service.Code")
        service_code = str(service["Code"])

        base_total = 0.0
        discount_total = 0.0
        final_total = 0.0
        currency: Optional[str] = None
        charge_lines = 0

        for package in _as_list(shipment.get("RatedPackage")):
            negotiated = package.get("NegotiatedCharges")
            base_service = package.get("BaseServiceCharge")

            if negotiated:
                base = _money(negotiated.get("BaseCharge"))
                discount = _money(negotiated.get("DiscountAmount")) or 0.0
                total = _money(negotiated.get("TotalCharge"))
                if total is None and base is None:
                    raise ValueError("negotiated charges carry neither BaseCharge nor TotalCharge")
                if total is None:
                    total = base - discount
                if base is None:
                    base = total + discount

                base_total += base
                discount_total += discount
                final_total += total
                currency = currency or self._currency_of(negotiated)
                charge_lines += 1
            elif base_service:
                amount = _money(base_service)
                base_total += amount
                final_total += amount
                currency = currency or base_service.get("CurrencyCode")
                charge_lines += 1

        if not charge_lines:
            raise ValueError("no package charges")

        discount = round_money(discount_total)
        return RateQuote(
            carrier=self.name,
            service_level=map_service_level(service_code),
            base_charge=round_money(base_total),
            final_charge=round_money(final_total),
            currency=currency or DEFAULT_CURRENCY,
            discount_amount=discount if discount > 0 else None,
            estimated_delivery=self._parse_estimated_arrival(shipment.get("TimeInTransit")),
            warnings=warnings,
            service_code=service_code,
            service_name=UPS_SERVICE_NAMES.get(service_code, service.get("Description") or None),
        )

    @staticmethod
    def _currency_of(negotiated: Dict[str, Any]) -> Optional[str]:
        for key in ("TotalCharge", "BaseCharge"):
            charge = negotiated.get(key)
            if charge and charge.get("CurrencyCode"):
                return charge["CurrencyCode"]
        return None

    @staticmethod
    def _parse_estimated_arrival(time_in_transit: Any) -> Optional[datetime]:
        """Estimated arrival is optional; any unexpected shape yields None."""
        if not isinstance(time_in_transit, dict):
            return None
        summary = time_in_transit.get("ServiceSummary")
        arrival = summary.get("EstimatedArrival") if isinstance(summary, dict) else None
        if not isinstance(arrival, dict):
            return None
        if isinstance(arrival.get("Arrival"), dict):
            arrival = arrival["Arrival"]

        date_str = arrival.get("Date")
        if not date_str:
            return None
        time_str = str(arrival.get("Time") or DEFAULT_ARRIVAL_TIME)
        try:
            return datetime.strptime(
                f"{date_str} {time_str[:4]}",
                "%Y%m%d %H%M",
            ).replace(tzinfo=timezone.utc)
        except ValueError:
            logger.debug(f"[UPS] Unparseable estimated arrival: {date_str} {time_str}")
            return None
