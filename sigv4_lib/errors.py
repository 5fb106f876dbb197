"""Exceptions raised while signing a request."""


class SigningError(Exception):
    """Base class for all signing failures."""


class ConfigError(SigningError, ValueError):
    """Region, service, credential or algorithm is missing or invalid."""


class MissingHeaderError(SigningError):
    """A header listed as signed is not present on the request."""

    def __init__(self, header_name: str):
        super().__init__(f"Signed header '{header_name}' not found in request")
        self.header_name = header_name


class BodyReadError(SigningError):
    """The request body could not be read to completion."""
