from typing import Any


class ParaError(Exception):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.payload = payload

    def __str__(self) -> str:
        if self.status_code and self.error_code:
            return f"{self.error_code} ({self.status_code}): {self.message}"
        elif self.status_code:
            return f"HTTP {self.status_code}: {self.message}"
        return self.message


class ParaClientError(ParaError):
    pass


class ParaServerError(ParaError):
    pass


class ParaNotFoundError(ParaClientError):
    def __init__(
        self, message: str = "The requested resource was not found", payload=None
    ):
        super().__init__(message, status_code=404, payload=payload)


class ParaAccessDeniedError(ParaClientError):
    def __init__(
        self, message: str = "Access denied", status_code: int = 403, payload=None
    ):
        super().__init__(message, status_code=status_code, payload=payload)


class ParaInvalidRequestError(ParaClientError):
    def __init__(self, message: str = "Invalid request", payload=None):
        super().__init__(message, status_code=400, payload=payload)
