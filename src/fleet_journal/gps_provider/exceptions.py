class GPSProviderException(Exception):
    """Base exception class for GPS provider errors."""

    message = "An error occurred while calling the GPS provider."

    def __init__(
        self, message: str = "An error occurred while calling the GPS provider."
    ):
        self.message = message or self.message
        super().__init__(self.message)


class ProviderUnavailableException(GPSProviderException):
    """The provider call failed: network, auth, rate limit or bad payload."""

    message = "GPS provider is unavailable."

    def __init__(self, details: str = "", device_id: str = "", status_code: int = -1):
        self.details = details
        self.device_id = device_id
        self.status_code = status_code
        message = self.message
        if device_id != "":
            message += f" Device ID: {device_id}"
        if status_code != -1:
            message += f", Status Code: {status_code}"
        if details != "":
            message += f" Details: {details}"
        super().__init__(message)


class ProviderAuthException(ProviderUnavailableException):
    """Login against the provider was refused."""

    message = "GPS provider login failed."


class ProviderRateLimitException(ProviderUnavailableException):
    """Provider answered 429."""

    message = "Rate limit exceeded for GPS provider."

    def __init__(self, action: str):
        self.action = action
        super().__init__(details=f"Action: {action}", status_code=429)


class ProviderServerException(ProviderUnavailableException):
    """Provider answered with a 5xx status."""

    message = "GPS provider server error."


class ProviderResponseException(ProviderUnavailableException):
    """Provider answered with an error envelope or a body that is not JSON."""

    message = "GPS provider returned an error response."
