from fastapi import HTTPException, status

VALIDATION_MESSAGE = "One or more validation errors occurred."


class FieldValidationError(HTTPException):
    """400 carrying per-field messages so a client can highlight the bad input."""

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": VALIDATION_MESSAGE, "errors": errors},
        )

    @classmethod
    def single(cls, field: str, message: str) -> "FieldValidationError":
        return cls({field: [message]})


class AuthorizationDenied(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def errors_from_request_validation(raw_errors: list[dict]) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for err in raw_errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        errors.setdefault(field, []).append(err.get("msg", "Invalid value"))
    return errors
