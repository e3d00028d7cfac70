"""HTTP Status Code Constants.

This module contains HTTP status code constants for clear and
type-safe handling of API responses.
"""


class HTTPStatusCodes:
    """HTTP status code constants."""

    # 2xx Success
    OK = 200
    NO_CONTENT = 204

    # 4xx Client Errors
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    TOO_MANY_REQUESTS = 429

    # 5xx Server Errors
    INTERNAL_SERVER_ERROR = 500

    @staticmethod
    def is_success(code: int) -> bool:
        """Check if status code indicates success (2xx)."""
        return 200 <= code < 300

    @staticmethod
    def is_client_error(code: int) -> bool:
        """Check if status code indicates client error (4xx)."""
        return 400 <= code < 500

    @staticmethod
    def is_auth_error(code: int) -> bool:
        """Check if status code means the credential was refused."""
        return code in (HTTPStatusCodes.UNAUTHORIZED, HTTPStatusCodes.FORBIDDEN)
