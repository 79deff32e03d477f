class ClassificationException(Exception):
    """Base exception class for classification errors."""

    message = "An error occurred while classifying trips."

    def __init__(self, message: str = "An error occurred while classifying trips."):
        self.message = message or self.message
        super().__init__(self.message)


class AdapterException(ClassificationException):
    """Raised when the AI suggestion service fails or returns an unusable reply."""

    message = "Kunde inte analysera resan"

    def __init__(self, entry_id: str = "", details: str = ""):
        self.entry_id = entry_id
        self.details = details
        message = self.message
        if entry_id != "":
            message += f" Entry ID: {entry_id}"
        if details != "":
            message += f" Details: {details}"
        super().__init__(message)


class EntryNotInSessionException(ClassificationException):
    message = "Entry is not part of this classification session."

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"{self.message} Entry ID: {entry_id}")


class InvalidTransitionException(ClassificationException):
    message = "Invalid review transition."

    def __init__(self, entry_id: str, state: str, action: str):
        self.entry_id = entry_id
        self.state = state
        self.action = action
        super().__init__(
            f"{self.message} Entry ID: {entry_id}, State: {state}, Action: {action}"
        )
