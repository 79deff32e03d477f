from http import HTTPStatus
from typing import Dict

from fastapi import HTTPException


class JournalException(HTTPException):
    """Base exception class for driving journal errors."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    message = "An error occurred in the driving journal."

    def __init__(
        self,
        status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR,
        message: str = "An error occurred in the driving journal.",
    ):
        self.status_code = status_code
        self.message = message or self.message
        super().__init__(status_code=status_code, detail=self.message)


class JournalValidationException(JournalException):
    """Raised when approved trips fail validation; nothing is persisted."""

    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    message = "Approved trips failed validation."

    def __init__(self, reasons: Dict[str, str]):
        self.reasons = dict(reasons)
        self.entry_ids = list(self.reasons)
        details = "; ".join(f"{k}: {v}" for k, v in self.reasons.items())
        message = f"{self.message} {details}"
        super().__init__(status_code=self.status_code, message=message)


class JournalEntryNotFoundException(JournalException):
    status_code = HTTPStatus.NOT_FOUND
    message = "Journal entry not found."

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        message = f"{self.message} Entry ID: {entry_id}"
        super().__init__(status_code=self.status_code, message=message)


class VehicleNotFoundException(JournalException):
    status_code = HTTPStatus.NOT_FOUND
    message = "Vehicle not found."

    def __init__(self, vehicle_id: str):
        self.vehicle_id = vehicle_id
        message = f"{self.message} Vehicle ID: {vehicle_id}"
        super().__init__(status_code=self.status_code, message=message)


class VehicleWithoutDeviceException(JournalException):
    status_code = HTTPStatus.BAD_REQUEST
    message = "Vehicle has no GPS device."

    def __init__(self, vehicle_id: str):
        self.vehicle_id = vehicle_id
        message = f"{self.message} Vehicle ID: {vehicle_id}"
        super().__init__(status_code=self.status_code, message=message)


class InvalidReviewException(JournalException):
    status_code = HTTPStatus.CONFLICT
    message = "Entry cannot be reviewed."

    def __init__(self, entry_id: str, details: str = ""):
        self.entry_id = entry_id
        message = f"{self.message} Entry ID: {entry_id}"
        if details != "":
            message += f" Details: {details}"
        super().__init__(status_code=self.status_code, message=message)
