"""
Failure types raised by the Store Hub services.

Each class carries the HTTP status it maps to, so the API layer can render any
of them with a single handler.
"""


class StoreHubError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(StoreHubError):
    status_code = 400


class MissingRequiredField(InvalidInput):
    def __init__(self, field: str, message: str = None):
        super().__init__(message or f"{field} is required.")
        self.field = field


class InvalidImage(InvalidInput):
    def __init__(self, message: str = "Invalid base64 image format."):
        super().__init__(message)


class RatingOutOfRange(InvalidInput):
    def __init__(self, rating: float):
        super().__init__("Rating must be between 0 and 5.")
        self.rating = rating


class InvalidReference(StoreHubError):
    status_code = 400


class Conflict(StoreHubError):
    status_code = 409


class NotFound(StoreHubError):
    status_code = 404


class UpdateFailed(StoreHubError):
    status_code = 400

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"No updates were made. The {kind} may not exist.")
        self.kind = kind
        self.entity_id = entity_id


class InvalidCredentials(StoreHubError):
    status_code = 401

    def __init__(self, message: str = "Incorrect username or password."):
        super().__init__(message)
