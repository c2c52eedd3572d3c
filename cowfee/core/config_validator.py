# /cowfee/core/config_validator.py
# Run at startup, before any node or API access.
from cowfee.core.config import settings
from cowfee.core.errors import ConfigurationError
from cowfee.core.logger import log


def validate() -> str:
    """Returns the keeper private key. Raises ConfigurationError on incomplete configuration."""
    log.info("CONFIG_VALIDATION_START")
    errors = []

    if settings.PRIVATE_KEY is None or not settings.PRIVATE_KEY.get_secret_value():
        errors.append("Missing env var PRIVATE_KEY")
    if settings.MAX_GAS_INCREASE_PERCENTAGE < 0:
        errors.append("MAX_GAS_INCREASE_PERCENTAGE must not be negative")
    if settings.MULTICALL_SIZE <= 0:
        errors.append("MULTICALL_SIZE must be positive")
    if settings.ORDERBOOK_REQUESTS_PER_SECOND <= 0:
        errors.append("ORDERBOOK_REQUESTS_PER_SECOND must be positive")

    if errors:
        for error in errors:
            log.critical("CONFIG_VALIDATION_ERROR", error=error)
        raise ConfigurationError("; ".join(errors))

    log.info("CONFIG_VALIDATION_PASSED")
    return settings.PRIVATE_KEY.get_secret_value()
