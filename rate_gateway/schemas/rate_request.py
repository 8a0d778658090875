"""
Rate Request Schemas

Pydantic models that validate inbound rate requests before any carrier is
called. Keys may be snake_case or camelCase.
"""
from dataclasses import asdict, is_dataclass
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from rate_gateway.modules.shipping.models import Address, Package, RateRequest, ServiceLevel


# ==================== Address Schemas ====================


class AddressSchema(BaseModel):
    """Origin or destination address."""
    model_config = ConfigDict(str_strip_whitespace=True)

    address_line1: str = Field(
        ..., min_length=1, max_length=100,
        validation_alias=AliasChoices("address_line1", "addressLine1", "street1"),
    )
    address_line2: Optional[str] = Field(
        None, max_length=100,
        validation_alias=AliasChoices("address_line2", "addressLine2", "street2"),
    )
    city: str = Field(..., min_length=1, max_length=100)
    state_province: str = Field(
        ..., min_length=2, max_length=2,
        validation_alias=AliasChoices("state_province", "stateProvince", "state"),
    )
    postal_code: str = Field(
        ..., min_length=1, max_length=20,
        validation_alias=AliasChoices("postal_code", "postalCode"),
    )
    country_code: str = Field(
        ..., min_length=2, max_length=2,
        validation_alias=AliasChoices("country_code", "countryCode", "country"),
    )

    @field_validator("state_province", "country_code", mode="before")
    @classmethod
    def normalize_code(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("address_line2", mode="before")
    @classmethod
    def blank_line2(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_domain(self) -> Address:
        return Address(
            address_line1=self.address_line1,
            address_line2=self.address_line2,
            city=self.city,
            state_province=self.state_province,
            postal_code=self.postal_code,
            country_code=self.country_code,
        )


# ==================== Package Schemas ====================


class PackageSchema(BaseModel):
    """Package dimensions and weight; all strictly positive."""
    length: float = Field(..., gt=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    weight: float = Field(..., gt=0)
    dimension_unit: Literal["IN", "CM"] = Field(
        "IN", validation_alias=AliasChoices("dimension_unit", "dimensionUnit"),
    )
    weight_unit: Literal["LBS", "KGS"] = Field(
        "LBS", validation_alias=AliasChoices("weight_unit", "weightUnit"),
    )

    @field_validator("dimension_unit", "weight_unit", mode="before")
    @classmethod
    def upper_unit(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    def to_domain(self) -> Package:
        return Package(
            length=self.length,
            width=self.width,
            height=self.height,
            weight=self.weight,
            dimension_unit=self.dimension_unit,
            weight_unit=self.weight_unit,
        )


# ==================== Rate Request ====================


class RateRequestSchema(BaseModel):
    """Full rate request."""
    origin: AddressSchema
    destination: AddressSchema
    packages: List[PackageSchema] = Field(..., min_length=1)
    service_level: Optional[ServiceLevel] = Field(
        None, validation_alias=AliasChoices("service_level", "serviceLevel"),
    )

    @field_validator("service_level", mode="before")
    @classmethod
    def upper_service_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or None
        return v

    def to_domain(self) -> RateRequest:
        return RateRequest(
            origin=self.origin.to_domain(),
            destination=self.destination.to_domain(),
            packages=tuple(pkg.to_domain() for pkg in self.packages),
            service_level=self.service_level,
        )


def validate_rate_request(payload: Any) -> RateRequest:
    """
    Validate a raw mapping or a RateRequest and return the canonical request.

    Raises:
        pydantic.ValidationError: With the field-level error list
    """
    if is_dataclass(payload) and not isinstance(payload, type):
        payload = asdict(payload)
    return RateRequestSchema.model_validate(payload).to_domain()
