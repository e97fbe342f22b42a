"""Logging setup for the CLI and the API server."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# framework/network loggers that drown out research progress at INFO
NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "openai._base_client",
    "anthropic._base_client",
    "huggingface_hub",
    "uvicorn.access",
    "asyncio",
)


def configure_logging(level: str = "INFO", noisy_level: str = "WARNING") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(getattr(logging, noisy_level.upper(), logging.WARNING))
