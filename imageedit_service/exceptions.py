"""
Error types raised by the image edit service.

Pure stages (color conversion, key matching) never raise; everything that
can fail derives from `ImageEditError` so callers can surface one message.
"""

from __future__ import annotations


class ImageEditError(Exception):
    """Base class for every failure the service reports to its caller."""


class DecodeError(ImageEditError):
    """Encoded bytes could not be parsed into a pixel grid."""


class InvalidStateError(ImageEditError):
    """An operation was invoked in a state that violates its precondition."""


class InvalidUploadError(ImageEditError):
    """An uploaded payload is empty, too large, or not declared as an image."""


class ExternalEditFailure(ImageEditError):
    """The generative model call failed or returned no usable image."""
