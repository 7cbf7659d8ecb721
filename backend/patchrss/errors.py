from __future__ import annotations

import httpx


class PatchRSSError(Exception):
    """Base for failures that map onto a client-visible status and text body."""

    status_code: int = 500
    message: str = "Internal Server Error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ClientInputError(PatchRSSError):
    status_code = 400


class MissingParamError(ClientInputError):
    message = "url query parameter not specified"


class InvalidURLError(ClientInputError):
    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(f"invalid url: {raw}")


class BadSchemeError(ClientInputError):
    message = "URL protocol must be either http or https"


class LoopDetectedError(ClientInputError):
    message = "request infinite loop detected"


class BlockedByPolicyError(PatchRSSError):
    status_code = 403
    message = "Request blocked"

    def __init__(self, host: str, addresses: list[str] | None = None):
        self.host = host
        self.addresses = list(addresses or [])
        super().__init__()


class UpstreamStatusError(PatchRSSError):
    def __init__(self, status_code: int, reason: str | None = None):
        self.status_code = status_code
        self.reason = reason or httpx.codes.get_reason_phrase(status_code)
        super().__init__(f"Not ok response returned: {self.reason}")


class UnparseableFeedError(PatchRSSError):
    status_code = 400
    message = "The returned response is not a valid RSS"


class UpstreamTransportError(PatchRSSError):
    status_code = 502
    message = "Upstream request failed"

    def __init__(self, detail: str | None = None):
        # detail is for logs only; the client always gets the fixed message.
        self.detail = detail
        super().__init__()


class UpstreamTimeoutError(UpstreamTransportError):
    status_code = 504
    message = "Upstream request timed out"


class UpstreamTooLargeError(UpstreamTransportError):
    message = "Upstream response too large"
