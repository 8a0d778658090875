"""
Base Carrier Interface

Every carrier adapter implements this interface. The rate service only ever
talks to carriers through `name`, `get_rates()` and `close()`; wire formats,
auth and endpoints stay inside the adapter.
"""
from abc import ABC, abstractmethod

from rate_gateway.core.exceptions import ErrorCode, RequestValidationError
from rate_gateway.modules.shipping.models import Address, Package, RateRequest, RateResponse


class BaseCarrier(ABC):
    """
    Abstract base class for all shipping carriers.

    Adapters raise CarrierIntegrationError subclasses on failure; the rate
    service turns them into CarrierError values.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the registry key for this carrier (e.g. "ups")."""
        pass

    @abstractmethod
    async def get_rates(self, request: RateRequest) -> RateResponse:
        """
        Get shipping rates from the carrier.

        Args:
            request: Canonical rate request

        Returns:
            RateResponse with normalized quotes

        Raises:
            CarrierIntegrationError: On any validation, auth, transport or parsing failure
        """
        pass

    async def close(self) -> None:
        """Release network resources. Default is a no-op."""
        return None

    # ==================== Shared validation ====================

    def validate_request(self, request: RateRequest) -> None:
        if not request.packages:
            raise RequestValidationError(
                "At least one package is required",
                code=ErrorCode.INVALID_REQUEST,
            )
        self.validate_address(request.origin, "origin")
        self.validate_address(request.destination, "destination")
        for index, package in enumerate(request.packages):
            self.validate_package(package, index)

    def validate_address(self, address: Address, role: str = "address") -> None:
        missing = [
            field_name
            for field_name in ("address_line1", "city", "state_province", "postal_code", "country_code")
            if not str(getattr(address, field_name, "") or "").strip()
        ]
        if missing:
            raise RequestValidationError(
                f"Invalid {role} address: missing {', '.join(missing)}",
                code=ErrorCode.INVALID_ADDRESS,
                details={"address": role, "missing": missing},
            )

    def validate_package(self, package: Package, index: int = 0) -> None:
        invalid = [
            field_name
            for field_name in ("length", "width", "height", "weight")
            if not getattr(package, field_name) or getattr(package, field_name) <= 0
        ]
        if invalid:
            raise RequestValidationError(
                f"Invalid package {index}: {', '.join(invalid)} must be positive",
                code=ErrorCode.INVALID_PACKAGE,
                details={"package": index, "invalid": invalid},
            )
