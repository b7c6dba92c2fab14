"""Error taxonomy for image import.

Every error is terminal for the request that raised it. Readers capture the
message into ``ImageReadResult.error``; nothing is re-raised across the worker
thread boundary.
"""


class ImageLoadError(Exception):
    """Base class for all import failures."""


class ImageIOError(ImageLoadError):
    """Missing file, unreadable file or file above the configured size limit."""


class UnsupportedFormatError(ImageLoadError):
    """No codec claimed the buffer, or the claimed layout/bit depth is not supported."""


class DecodeFailureError(ImageLoadError):
    """A codec claimed the buffer but could not decode its payload."""


class ResolutionRejectedError(ImageLoadError):
    """Image dimensions violate the resolution policy."""


class ResourceCreationError(ImageLoadError):
    """Raised by a texture builder when it cannot create the resource."""
