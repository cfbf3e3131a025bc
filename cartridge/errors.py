# cartridge/errors.py
from __future__ import annotations


class CartridgeError(Exception):
    """Base for failures raised by the export pipeline."""


class UnsupportedContextError(CartridgeError, TypeError):
    """The export request's context is not a course."""


class ManifestError(CartridgeError):
    pass


class ConversionError(CartridgeError):
    pass


class ExternalContentError(CartridgeError):
    """An external content service failed or never finished; recorded, not raised out of the run."""
