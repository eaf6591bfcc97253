from __future__ import annotations

import httpx


class ProviderError(RuntimeError):
    kind = "transport"

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    kind = "auth"


class ProviderQuotaError(ProviderError):
    kind = "quota"


class ProviderTransportError(ProviderError):
    kind = "transport"


def classify_http_error(provider: str, exc: Exception) -> ProviderError:
    """Map an httpx/decoding failure onto the provider error taxonomy."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            return ProviderAuthError(provider, f"authentication failed (HTTP {status})", status)
        if status == 429:
            return ProviderQuotaError(provider, "rate limit exceeded (HTTP 429)", status)
        return ProviderTransportError(provider, f"HTTP {status}", status)
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return ProviderTransportError(provider, "request timed out")
    if isinstance(exc, httpx.HTTPError):
        return ProviderTransportError(provider, f"network error: {exc}")
    if isinstance(exc, ValueError):
        return ProviderTransportError(provider, f"malformed payload: {exc}")
    return ProviderTransportError(provider, f"unexpected error: {type(exc).__name__}: {exc}")
