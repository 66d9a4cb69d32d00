class PortalUpstreamError(RuntimeError):
    """Raised when the portal backend fails (timeouts, network errors, non-2xx responses)."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PortalContractError(RuntimeError):
    """Raised when the portal backend returns a body that cannot be decoded into the expected shape."""
    pass


class PortalConfigurationError(RuntimeError):
    """Raised when the portal client is missing required configuration (admin key, base URL)."""
    pass
