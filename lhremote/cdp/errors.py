"""Exceptions raised by the CDP layer."""


class CDPError(Exception):
    """Base class for all CDP-related errors."""


class CDPConnectionError(CDPError):
    """A WebSocket connection to a CDP target cannot be established or was lost."""


class CDPDiscoveryError(CDPConnectionError):
    """The ``/json/list`` endpoint could not be reached (nothing is listening)."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class CDPProtocolMismatchError(CDPDiscoveryError):
    """Something answered on the port, but it does not speak CDP target discovery."""


class CDPTimeoutError(CDPError):
    """A CDP request or awaited event did not arrive within the timeout."""


class CDPEvaluationError(CDPError):
    """The remote side returned a protocol error or the evaluated script threw."""
