"""Exception taxonomy for the extraction engine."""


class ExtractionError(Exception):
    """Base class for every error raised inside the extraction engine."""

    pass


class InvalidUrlError(ExtractionError):
    """Exception raised when an input string cannot be parsed as a URL."""

    pass


class FetchTimeoutError(ExtractionError):
    """Exception raised when a fetch does not complete before its deadline."""

    pass


class NetworkError(ExtractionError):
    """Exception raised on connection, DNS or TLS failures."""

    pass


class ClientHttpError(ExtractionError):
    """Exception raised for 4xx responses. Never retried."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"Client error ({status_code}) for {url}")
        self.status_code = status_code
        self.url = url


class ServerHttpError(ExtractionError):
    """Exception raised for 5xx responses. Retryable."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"Server error ({status_code}) for {url}")
        self.status_code = status_code
        self.url = url


class ParseError(ExtractionError):
    """Exception raised when HTML or JSON cannot be interpreted."""

    pass


class ServiceUnavailableError(ExtractionError):
    """Exception raised by optional third-party collaborators."""

    pass
