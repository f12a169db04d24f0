from rest_framework import status


class BakeOpsError(Exception):
    code = "error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed."

    def __init__(self, message: str | None = None, *, code: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def as_payload(self) -> dict:
        return {"error": self.code, "message": self.message, "details": self.details}


class IngestionValidationError(BakeOpsError):
    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid ingestion request."


class ParseError(BakeOpsError):
    code = "parse-error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Document text could not be extracted."


class MappingConflict(BakeOpsError):
    code = "mapping-conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting decisions for the same product name."

    def __init__(self, keys: list[str], message: str | None = None):
        self.keys = sorted(keys)
        super().__init__(message, details={"keys": self.keys})


class UnresolvedProductError(BakeOpsError):
    code = "unresolved-products"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Some product names are neither mapped nor ignored."

    def __init__(self, unresolved: list[str], message: str | None = None):
        self.unresolved = sorted(unresolved)
        super().__init__(message, details={"unresolved": self.unresolved})
