"""
Pytest configuration and fixtures for rate gateway tests.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

# Set test environment before importing gateway modules
os.environ["ENVIRONMENT"] = "test"
os.environ["ENABLED_CARRIERS"] = "ups"
os.environ["UPS_CLIENT_ID"] = "test-client-id"
os.environ["UPS_CLIENT_SECRET"] = "test-client-secret"
os.environ["UPS_ACCOUNT_NUMBER"] = ""

from rate_gateway.core.http_client import RetryConfig, TransportClient  # noqa: E402
from rate_gateway.core.token_cache import TokenCache  # noqa: E402
from rate_gateway.modules.shipping.carriers.ups import UPSCarrier, UPSCredentials  # noqa: E402
from rate_gateway.modules.shipping.models import (  # noqa: E402
    Address,
    Package,
    RateRequest,
)

UPS_TEST_BASE_URL = "https://ups.test"
TOKEN_PATH = "/security/v1/oauth/token"
RATING_PATH = "/rating/v2/shop/rates"


async def no_sleep(delay: float) -> None:
    return None


class FakeClock:
    """Controllable clock for token expiry tests."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def sample_address_data() -> Dict[str, Any]:
    """Sample origin address as a raw mapping."""
    return {
        "address_line1": "123 Main St",
        "city": "New York",
        "state_province": "NY",
        "postal_code": "10001",
        "country_code": "US",
    }


@pytest.fixture
def sample_destination_data() -> Dict[str, Any]:
    """Sample destination address as a raw mapping (camelCase keys)."""
    return {
        "addressLine1": "456 Park Ave",
        "city": "Los Angeles",
        "stateProvince": "CA",
        "postalCode": "90001",
        "countryCode": "US",
    }


@pytest.fixture
def sample_package_data() -> Dict[str, Any]:
    """Sample package as a raw mapping."""
    return {
        "length": 10,
        "width": 8,
        "height": 6,
        "weight": 5,
    }


@pytest.fixture
def rate_request_payload(sample_address_data, sample_destination_data, sample_package_data) -> Dict[str, Any]:
    return {
        "origin": sample_address_data,
        "destination": sample_destination_data,
        "packages": [sample_package_data],
    }


@pytest.fixture
def rate_request() -> RateRequest:
    """Canonical two-package request."""
    return RateRequest(
        origin=Address(
            address_line1="123 Main St",
            city="New York",
            state_province="NY",
            postal_code="10001",
            country_code="US",
        ),
        destination=Address(
            address_line1="456 Park Ave",
            city="Los Angeles",
            state_province="CA",
            postal_code="90001",
            country_code="US",
        ),
        packages=(
            Package(length=10, width=8, height=6, weight=5),
            Package(length=8, width=8, height=8, weight=3),
        ),
    )


# ==================== UPS payload builders ====================


def token_body(token: str = "test-token", expires_in: int = 3600) -> Dict[str, Any]:
    return {"access_token": token, "token_type": "Bearer", "expires_in": expires_in}


def base_charge_package(amount: str, currency: str = "USD") -> Dict[str, Any]:
    return {"BaseServiceCharge": {"CurrencyCode": currency, "MonetaryValue": amount}}


def negotiated_package(base: str, discount: Optional[str], total: str) -> Dict[str, Any]:
    charges: Dict[str, Any] = {
        "BaseCharge": {"CurrencyCode": "USD", "MonetaryValue": base},
        "TotalCharge": {"CurrencyCode": "USD", "MonetaryValue": total},
    }
    if discount is not None:
        charges["DiscountAmount"] = {"CurrencyCode": "USD", "MonetaryValue": discount}
    return {"NegotiatedCharges": charges}


def rated_shipment(code: str, packages: List[Dict[str, Any]], **extra) -> Dict[str, Any]:
    shipment = {
        "Service": {"Code": code, "Description": f"Service {code}"},
        "RatedPackage": packages,
    }
    shipment.update(extra)
    return shipment


def rate_body(
    shipments: Any,
    status_code: str = "0",
    description: str = "Success",
    alerts: Any = None,
) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "ResponseStatus": {"Code": status_code, "Description": description},
    }
    if alerts is not None:
        response["Alert"] = alerts
    return {"RateResponse": {"Response": response, "RatedShipment": shipments}}


class UPSStub:
    """
    httpx MockTransport handler standing in for the UPS token and rating
    endpoints. Replies are queued per path as (status, body); the last one
    repeats. A body that is not a dict is sent as raw text.
    """

    def __init__(self):
        self.token_replies: List[Tuple[int, Any]] = [(200, token_body())]
        self.rate_replies: List[Tuple[int, Any]] = [(200, rate_body([]))]
        self.requests: List[httpx.Request] = []

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == TOKEN_PATH:
            queue = self.token_replies
        elif request.url.path == RATING_PATH:
            queue = self.rate_replies
        else:
            return httpx.Response(404, json={"error": "not found"})
        status, body = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(body, dict):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)


@pytest.fixture
def ups_stub() -> UPSStub:
    return UPSStub()


@pytest.fixture
def make_ups_carrier(ups_stub) -> Callable[..., UPSCarrier]:
    """Build a UPSCarrier wired to the stub with instant retries."""

    def factory(
        account_number: str = "",
        max_attempts: int = 3,
        clock: Optional[FakeClock] = None,
    ) -> UPSCarrier:
        http_client = TransportClient(
            UPS_TEST_BASE_URL,
            retry_config=RetryConfig(max_attempts=max_attempts, base_delay_ms=0),
            transport=httpx.MockTransport(ups_stub),
        )
        http_client._sleep = no_sleep
        credentials = UPSCredentials(
            client_id="test-client-id",
            client_secret="test-client-secret",
            account_number=account_number,
            base_url_override=UPS_TEST_BASE_URL,
        )
        token_cache = None
        if clock is not None:
            token_cache = TokenCache(
                client_id=credentials.client_id,
                client_secret=credentials.client_secret,
                http_client=http_client,
                token_path=TOKEN_PATH,
                clock=clock,
            )
        return UPSCarrier(credentials=credentials, http_client=http_client, token_cache=token_cache)

    return factory
