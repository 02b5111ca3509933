"""Error kinds surfaced by the booking store, reconcilers and dispatcher."""


class BookingError(Exception):
    """Base error; ``status_code`` is what the HTTP layer answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequest(BookingError):
    """Missing or malformed input (no phone, no VRN, unreadable spreadsheet)."""

    status_code = 400


class NotFound(BookingError):
    """No record matches the given phone number or booking id."""

    status_code = 404


class DispatchFailure(BookingError):
    """The telephony provider refused or never answered a call request."""

    status_code = 502


class StoreIOFailure(BookingError):
    """The data file could not be written."""

    status_code = 500
