import pytest
from pydantic import ValidationError

from rate_gateway.modules.shipping.models import ServiceLevel
from rate_gateway.schemas.rate_request import (
    AddressSchema,
    PackageSchema,
    validate_rate_request,
)


def test_valid_payload_becomes_domain_request(rate_request_payload):
    request = validate_rate_request(rate_request_payload)

    assert request.origin.city == "New York"
    assert request.destination.postal_code == "90001"
    assert isinstance(request.packages, tuple)
    assert request.packages[0].weight == 5
    assert request.packages[0].dimension_unit == "IN"
    assert request.packages[0].weight_unit == "LBS"
    assert request.service_level is None


def test_camel_case_and_short_keys_are_accepted():
    address = AddressSchema.model_validate({
        "street1": "1 Infinite Loop",
        "street2": "Suite 100",
        "city": "Cupertino",
        "state": "ca",
        "postalCode": "95014",
        "country": "us",
    })

    assert address.address_line1 == "1 Infinite Loop"
    assert address.address_line2 == "Suite 100"
    assert address.state_province == "CA"
    assert address.country_code == "US"


def test_blank_second_line_is_dropped(sample_address_data):
    sample_address_data["address_line2"] = "   "
    assert AddressSchema.model_validate(sample_address_data).address_line2 is None


@pytest.mark.parametrize(
    "field,value",
    [
        ("address_line1", ""),
        ("city", ""),
        ("postal_code", ""),
        ("state_province", "N"),
        ("state_province", "New York"),
        ("country_code", "USA"),
        ("country_code", ""),
    ],
)
def test_invalid_address_fields(sample_address_data, field, value):
    sample_address_data[field] = value

    with pytest.raises(ValidationError) as exc_info:
        AddressSchema.model_validate(sample_address_data)

    assert exc_info.value.errors()[0]["loc"] == (field,)


@pytest.mark.parametrize("field", ["length", "width", "height", "weight"])
@pytest.mark.parametrize("value", [0, -1])
def test_package_numbers_must_be_positive(sample_package_data, field, value):
    sample_package_data[field] = value

    with pytest.raises(ValidationError):
        PackageSchema.model_validate(sample_package_data)


def test_package_units(sample_package_data):
    sample_package_data.update({"dimensionUnit": "cm", "weightUnit": "kgs"})
    package = PackageSchema.model_validate(sample_package_data)
    assert (package.dimension_unit, package.weight_unit) == ("CM", "KGS")

    sample_package_data["weightUnit"] = "oz"
    with pytest.raises(ValidationError):
        PackageSchema.model_validate(sample_package_data)


def test_packages_are_required(rate_request_payload):
    rate_request_payload["packages"] = []

    with pytest.raises(ValidationError):
        validate_rate_request(rate_request_payload)


def test_missing_origin(rate_request_payload):
    del rate_request_payload["origin"]

    with pytest.raises(ValidationError) as exc_info:
        validate_rate_request(rate_request_payload)

    assert exc_info.value.errors()[0]["loc"] == ("origin",)


def test_service_level_is_parsed(rate_request_payload):
    rate_request_payload["serviceLevel"] = "two_day"
    assert validate_rate_request(rate_request_payload).service_level == ServiceLevel.TWO_DAY

    rate_request_payload["serviceLevel"] = "TELEPORT"
    with pytest.raises(ValidationError):
        validate_rate_request(rate_request_payload)


def test_domain_request_is_revalidated(rate_request):
    assert validate_rate_request(rate_request) == rate_request


def test_non_mapping_payload_is_rejected():
    with pytest.raises(ValidationError):
        validate_rate_request(["not", "a", "request"])
