from __future__ import annotations


class YouTubeServiceError(Exception):
    pass


class YouTubeQuotaExceededError(YouTubeServiceError):
    def __init__(
        self,
        message: str,
        *,
        retry_after_seconds: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.retry_after_seconds = (
            max(1, retry_after_seconds) if retry_after_seconds is not None else None
        )
        self.reason = reason


class ProviderTransientError(YouTubeServiceError):
    pass


class ProviderPermanentError(YouTubeServiceError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SearchFailedError(YouTubeServiceError):
    pass


class QuotaWaitCancelledError(YouTubeServiceError):
    pass


class AnalysisServiceError(Exception):
    pass


class PromptLibraryError(AnalysisServiceError):
    pass


class InterchangeFileError(Exception):
    pass
