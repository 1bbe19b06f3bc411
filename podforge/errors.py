class PodforgeError(Exception):
    """Base class for domain errors. `retryable` tells the job tracker whether another attempt may help."""

    retryable = False


class ValidationError(PodforgeError):
    pass


class ExtractionFailed(PodforgeError):
    retryable = True

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class EmptyInput(PodforgeError):
    pass


class TTSProviderError(PodforgeError):
    retryable = True

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class AllProvidersFailed(PodforgeError):
    retryable = True

    def __init__(self, primary_error: Exception, secondary_error: Exception) -> None:
        super().__init__(
            f"All TTS providers failed. primary: {primary_error} | secondary: {secondary_error}"
        )
        self.primary_error = primary_error
        self.secondary_error = secondary_error


class InvalidTransition(PodforgeError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid submission transition: {current} -> {target}")
        self.current = current
        self.target = target


class InvalidStateTransition(PodforgeError):
    def __init__(self, operation: str, current: str) -> None:
        super().__init__(f"Cannot {operation} job with status: {current}")
        self.operation = operation
        self.current = current


class MaxRetriesExceeded(PodforgeError):
    def __init__(self, retry_count: int, max_retries: int, last_error: str | None = None) -> None:
        message = f"Maximum retry attempts exceeded ({retry_count}/{max_retries})"
        if last_error:
            message = f"{message}: {last_error}"
        super().__init__(message)
        self.retry_count = retry_count
        self.max_retries = max_retries
        self.last_error = last_error


class ScriptRejected(PodforgeError):
    def __init__(self, violations: list[str]) -> None:
        super().__init__("Script rejected: " + "; ".join(violations))
        self.violations = list(violations)


class NoVoiceAvailable(PodforgeError):
    pass


class PipelineCancelled(PodforgeError):
    pass
