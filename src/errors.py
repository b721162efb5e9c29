"""
Intune Backup - Error Types

Failures raised by the Graph session and the exporter.
"""

from typing import Optional


class GraphError(Exception):
    """Base class for Microsoft Graph failures."""


class AuthenticationError(GraphError):
    """An access token could not be acquired."""


class TransportError(GraphError):
    """A Graph request failed on the network or returned an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class InsufficientPermissionError(TransportError):
    """Graph answered 401/403 for the request."""


class ExportError(Exception):
    """An object returned by Graph could not be turned into its export document."""


class FilesystemError(Exception):
    """A backup folder or file could not be written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
