"""
Package-wide exception base and the state errors raised by the server,
the router and the response writer.

    MediaServerError
    ├── ServerStateError        (also RuntimeError)  - server already started
    ├── RouterStateError        (also RuntimeError)  - route table frozen
    ├── ResponseCommittedError  (also RuntimeError)  - head already sent
    └── HTTPError                                    - see mediaserver.http.errors
"""


class MediaServerError(Exception):
    """Base class for every error raised by mediaserver itself."""


class ServerStateError(MediaServerError, RuntimeError):
    """start() was called on a server that is already running."""


class RouterStateError(MediaServerError, RuntimeError):
    """A route was registered after the route table was frozen."""


class ResponseCommittedError(MediaServerError, RuntimeError):
    """
    The response writer was used out of order.

    Raised when the head is written twice, or body bytes are written
    before the head (or after the writer closed).
    """
