# sdautomate/core/errors.py
from __future__ import annotations


class SDAutomateError(Exception):
    """Base class for errors that end a batch run."""


class ConfigLoadError(SDAutomateError):
    """The job configuration source is missing or malformed."""


class TransportError(SDAutomateError):
    """Network, HTTP status or response-body failure talking to the WebUI."""


class ImageDecodeError(SDAutomateError):
    """A returned image payload could not be decoded."""
