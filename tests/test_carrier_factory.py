import pytest

from rate_gateway.core.config import Settings
from rate_gateway.core.exceptions import CarrierNotFoundError
from rate_gateway.modules.shipping.carriers import CarrierFactory, CarrierRegistry
from rate_gateway.modules.shipping.carriers.ups import UPS_SANDBOX_URL, UPSCarrier


def make_settings(**overrides) -> Settings:
    values = {
        "UPS_CLIENT_ID": "id",
        "UPS_CLIENT_SECRET": "secret",
        "UPS_USE_SANDBOX": True,
        "HTTP_RETRY_ATTEMPTS": 2,
        "HTTP_RETRY_DELAY_MS": 50,
        "HTTP_TIMEOUT_SECONDS": 10.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_ups_is_registered():
    assert "ups" in CarrierFactory.get_registered_carriers()


def test_create_builds_configured_ups_carrier():
    carrier = CarrierFactory.create("UPS", make_settings(UPS_ACCOUNT_NUMBER="A1B2C3"))

    assert isinstance(carrier, UPSCarrier)
    assert carrier.name == "ups"
    assert carrier.credentials.base_url == UPS_SANDBOX_URL
    assert carrier.credentials.negotiated_rates is True
    assert carrier._http_client.retry_config.max_attempts == 2
    assert carrier._http_client.retry_config.base_delay_ms == 50
    assert carrier._http_client.timeout == 10.0
    assert carrier.token_cache.refresh_buffer_seconds == 30


def test_create_unknown_carrier():
    with pytest.raises(CarrierNotFoundError):
        CarrierFactory.create("pigeon", make_settings())


def test_create_enabled_skips_unknown_names():
    carriers = CarrierFactory.create_enabled(make_settings(ENABLED_CARRIERS="ups, pigeon"))
    assert [c.name for c in carriers] == ["ups"]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("ups", ["ups"]),
        ("UPS, FedEx", ["ups", "fedex"]),
        ('["ups", "usps"]', ["ups", "usps"]),
        ("", []),
        (["UPS"], ["ups"]),
    ],
)
def test_enabled_carriers_parsing(raw, expected):
    assert make_settings(ENABLED_CARRIERS=raw).ENABLED_CARRIERS == expected


@pytest.mark.parametrize(
    "field,value",
    [
        ("HTTP_RETRY_ATTEMPTS", 0),
        ("HTTP_RETRY_DELAY_MS", -1),
        ("HTTP_TIMEOUT_SECONDS", 0),
    ],
)
def test_transport_settings_are_validated(field, value):
    with pytest.raises(ValueError):
        make_settings(**{field: value})


def test_registry_membership():
    registry = CarrierRegistry()
    carrier = CarrierFactory.create("ups", make_settings())
    registry.register(carrier)

    assert "ups" in registry
    assert len(registry) == 1
    assert list(registry) == [carrier]
    assert registry.get("fedex") is None
