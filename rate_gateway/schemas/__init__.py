"""Inbound request schemas."""
from rate_gateway.schemas.rate_request import (
    AddressSchema,
    PackageSchema,
    RateRequestSchema,
    validate_rate_request,
)
