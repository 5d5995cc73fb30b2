class CldApiError(Exception):
    """
    Base exception for all SDK failures.
    """

    pass


class ConfigurationError(CldApiError, ValueError):
    """
    Raised when credentials or a connection string are missing or malformed.
    """

    pass


class TransportError(CldApiError):
    """
    Raised when the request could not be delivered (DNS, connect, timeout).

    HTTP error statuses are never reported through this exception.
    """

    def __init__(self, message: str, reason: object = None):
        super().__init__(message)
        self.reason = reason


class MultipartReadError(CldApiError, OSError):
    """
    Raised when the upload stream fails while the multipart body is written.
    """

    pass
