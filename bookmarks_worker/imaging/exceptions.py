class ImageError(Exception):
    """Base exception for image processing errors."""


class NotAnImageError(ImageError):
    """Raised when bytes cannot be identified as a supported image."""


class ImageTooLargeError(ImageError):
    """Raised when decoding an image would exceed the memory ceiling."""


class ImageProcessingError(ImageError):
    """Raised when a decodable image cannot be transformed safely."""
