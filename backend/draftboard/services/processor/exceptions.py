class ProcessorError(Exception):
    """Definitive processor failure: the request was not (and will not be) applied."""

    http_status = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ProcessorAuthError(ProcessorError):
    """Authentication failed."""

    pass


class ProcessorNotFoundError(ProcessorError):
    """Resource not found."""

    pass


class ProcessorRejectedError(ProcessorError):
    """Request rejected (declined transfer, invalid parameters)."""

    pass


class ProcessorUnavailable(ProcessorError):
    """Outcome unknown: timeout, network failure or exhausted retries on 429/5xx.

    Callers must not assume the request failed; it may have been applied.
    """

    http_status = 504
