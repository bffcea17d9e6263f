"""Request-level errors raised by the image pipeline.

Anything not derived from ImageRequestError (Pillow decode/encode errors, OS errors)
is treated by the API as a processing failure and reported with status 500.
"""


class ImageRequestError(Exception):
    """A client-side problem with the request. Reported with ``status_code``."""

    status_code = 400


class MissingFileError(ImageRequestError):
    pass


class InvalidParameterError(ImageRequestError):
    pass


class OutOfBoundsError(ImageRequestError):
    pass


class UnsupportedFileTypeError(ImageRequestError):
    pass


class FileTooLargeError(ImageRequestError):
    status_code = 413
