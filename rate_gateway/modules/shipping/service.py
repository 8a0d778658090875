"""
Rate Shopping Service

Entry point for callers. Validates a rate request once, fans it out to every
registered carrier concurrently and merges the results:
- A failing carrier never blocks or cancels the others
- Each failure becomes exactly one CarrierError in the response
- Quotes keep registration order, then the carrier's own order
"""
import asyncio
import logging
from typing import Any, Callable, Iterable, List, Optional

from pydantic import ValidationError

from rate_gateway.core.config import settings
from rate_gateway.core.exceptions import (
    CarrierIntegrationError,
    CarrierNotFoundError,
    ErrorCode,
    RequestValidationError,
)
from rate_gateway.modules.shipping.carriers import DUPLICATE_REPLACE, CarrierRegistry
from rate_gateway.modules.shipping.carriers.base import BaseCarrier
from rate_gateway.modules.shipping.models import (
    CarrierError,
    CarrierResult,
    RateRequest,
    RateResponse,
)
from rate_gateway.schemas.rate_request import validate_rate_request

logger = logging.getLogger(__name__)

_UNSET = object()


class RateShoppingService:
    """
    Aggregates rate quotes across carriers.

    Usage:
        async with RateShoppingService(carriers=CarrierFactory.create_enabled()) as service:
            response = await service.get_rates(payload)
    """

    def __init__(
        self,
        carriers: Optional[Iterable[BaseCarrier]] = None,
        validator: Callable[[Any], RateRequest] = validate_rate_request,
        carrier_timeout_seconds: Any = _UNSET,
        on_duplicate: str = DUPLICATE_REPLACE,
    ):
        self._registry = CarrierRegistry(on_duplicate=on_duplicate)
        self._validator = validator
        if carrier_timeout_seconds is _UNSET:
            carrier_timeout_seconds = settings.CARRIER_TIMEOUT_SECONDS
        self.carrier_timeout_seconds: Optional[float] = carrier_timeout_seconds

        for carrier in carriers or []:
            self.register_carrier(carrier)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ==================== Registration ====================

    def register_carrier(self, carrier: BaseCarrier) -> None:
        """
        Register a carrier under carrier.name.

        Raises:
            DuplicateCarrierError: Name already taken and on_duplicate="reject"
        """
        self._registry.register(carrier)

    def unregister_carrier(self, name: str) -> bool:
        return self._registry.unregister(name)

    def list_carriers(self) -> List[str]:
        return self._registry.names()

    async def close(self) -> None:
        """Close every registered carrier."""
        for carrier in self._registry.all():
            await carrier.close()

    # ==================== Rating ====================

    async def get_rates(self, payload: Any) -> RateResponse:
        """
        Get quotes from every registered carrier.

        Args:
            payload: RateRequest or a raw mapping in snake_case or camelCase

        Returns:
            RateResponse with all quotes; `errors` lists one entry per failed carrier

        Raises:
            RequestValidationError: The request failed validation; no carrier was called
        """
        request = self._validate(payload)
        carriers = self._registry.all()

        if not carriers:
            logger.warning("[RATES] No carriers registered")
            return RateResponse()

        logger.info(
            f"[RATES] Requesting rates {request.origin.city} -> {request.destination.city}, "
            f"{len(request.packages)} package(s), {len(carriers)} carrier(s)"
        )

        results = await asyncio.gather(
            *(self._call_carrier(carrier, request) for carrier in carriers),
            return_exceptions=True,
        )

        response = RateResponse()
        errors: List[CarrierError] = []
        for carrier, result in zip(carriers, results):
            if isinstance(result, BaseException):
                # _call_carrier only lets cancellation through
                result = CarrierResult.fail(CarrierError(
                    code=ErrorCode.UNKNOWN.value,
                    message=f"Carrier call did not complete: {result!r}",
                    carrier=carrier.name,
                ))
            if result.success and result.data is not None:
                response.quotes.extend(result.data.quotes)
            elif result.error is not None:
                errors.append(result.error)

        if errors:
            response.errors = errors

        logger.info(
            f"[RATES] Completed: {len(response.quotes)} quote(s), "
            f"{len(errors)} carrier error(s)"
        )
        return response

    async def get_rates_from_carrier(self, name: str, payload: Any) -> CarrierResult:
        """
        Get quotes from a single carrier.

        Never raises for an unknown carrier, an invalid request or a carrier
        failure; each comes back as a failed CarrierResult.
        """
        carrier = self._registry.get(name)
        if carrier is None:
            logger.warning(f"[RATES] Carrier not found: {name}")
            return CarrierResult.fail(CarrierNotFoundError(name).to_carrier_error(name))

        try:
            request = self._validate(payload)
        except RequestValidationError as e:
            return CarrierResult.fail(e.to_carrier_error(name))

        return await self._call_carrier(carrier, request)

    # ==================== Internals ====================

    def _validate(self, payload: Any) -> RateRequest:
        try:
            return self._validator(payload)
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False)
            logger.info(f"[RATES] Rate request rejected: {len(errors)} validation error(s)")
            raise RequestValidationError(
                "Invalid rate request",
                details={"errors": errors},
                original_error=e,
            ) from e
        except RequestValidationError:
            raise
        except Exception as e:
            logger.info(f"[RATES] Rate request rejected: {e}")
            raise RequestValidationError(
                f"Invalid rate request: {e}",
                details={"errors": [str(e)]},
                original_error=e,
            ) from e

    async def _call_carrier(self, carrier: BaseCarrier, request: RateRequest) -> CarrierResult:
        """Run one carrier and convert any failure into a CarrierResult."""
        try:
            if self.carrier_timeout_seconds:
                response = await asyncio.wait_for(
                    carrier.get_rates(request),
                    timeout=self.carrier_timeout_seconds,
                )
            else:
                response = await carrier.get_rates(request)
            return CarrierResult.ok(response)

        except asyncio.TimeoutError:
            logger.error(
                f"[RATES] {carrier.name} did not respond within {self.carrier_timeout_seconds}s"
            )
            return CarrierResult.fail(CarrierError(
                code=ErrorCode.TIMEOUT.value,
                message=f"Carrier did not respond within {self.carrier_timeout_seconds}s",
                details={"timeout_seconds": self.carrier_timeout_seconds},
                carrier=carrier.name,
            ))
        except CarrierIntegrationError as e:
            logger.error(f"[RATES] {carrier.name} failed: {e.code.value} - {e.message}")
            return CarrierResult.fail(e.to_carrier_error(carrier.name))
        except Exception as e:
            logger.exception(f"[RATES] {carrier.name} raised unexpected error: {e}")
            return CarrierResult.fail(CarrierError(
                code=ErrorCode.UNKNOWN.value,
                message=str(e) or e.__class__.__name__,
                details={"exception": e.__class__.__name__},
                carrier=carrier.name,
            ))
