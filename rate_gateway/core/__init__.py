from rate_gateway.core.config import settings, Settings
