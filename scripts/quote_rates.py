#!/usr/bin/env python3
"""
Quote Rates CLI

Reads a JSON rate request and prints the aggregated quotes from every
enabled carrier.

Usage:
    # All enabled carriers (ENABLED_CARRIERS)
    python scripts/quote_rates.py request.json

    # One carrier, request on stdin
    cat request.json | python scripts/quote_rates.py --carrier ups

Environment:
    UPS_CLIENT_ID / UPS_CLIENT_SECRET - UPS OAuth credentials
    UPS_ACCOUNT_NUMBER - Enables negotiated rates
    UPS_USE_SANDBOX - Use the UPS customer integration environment

Exit codes:
    0 - success (the response may still carry per-carrier errors)
    1 - the single requested carrier failed
    2 - invalid request
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from rate_gateway.core.config import settings
from rate_gateway.core.exceptions import ErrorCode, RequestValidationError
from rate_gateway.core.log_config import configure_logging
from rate_gateway.modules.shipping.carriers import CarrierFactory
from rate_gateway.modules.shipping.service import RateShoppingService

logger = logging.getLogger("quote_rates")

EXIT_OK = 0
EXIT_CARRIER_FAILED = 1
EXIT_INVALID_REQUEST = 2


def load_request(path: Optional[str]) -> Dict[str, Any]:
    if not path or path == "-":
        return json.load(sys.stdin)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run(args: argparse.Namespace) -> int:
    payload = load_request(args.request)
    settings.warn_missing_credentials()

    carriers = CarrierFactory.create_enabled(settings)
    async with RateShoppingService(carriers=carriers) as service:
        if args.carrier:
            result = await service.get_rates_from_carrier(args.carrier, payload)
            print_json(result.to_dict())
            if result.success:
                return EXIT_OK
            if result.error and result.error.code == ErrorCode.INVALID_REQUEST.value:
                return EXIT_INVALID_REQUEST
            return EXIT_CARRIER_FAILED

        try:
            response = await service.get_rates(payload)
        except RequestValidationError as e:
            print_json({"error": e.to_carrier_error().to_dict()})
            return EXIT_INVALID_REQUEST

        print_json(response.to_dict())
        return EXIT_OK


def main() -> int:
    parser = argparse.ArgumentParser(description="Get shipping rate quotes from enabled carriers")
    parser.add_argument("request", nargs="?", help="Path to a JSON rate request (default: stdin)")
    parser.add_argument("--carrier", help="Quote a single carrier by name (e.g. ups)")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args()

    configure_logging(args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
