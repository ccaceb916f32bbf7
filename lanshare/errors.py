"""Error taxonomy shared by every lanshare component."""


class TransferError(Exception):
    """Base class for all lanshare errors."""

    status_code = 500


# ----------------------------
# Validation
# ----------------------------

class ValidationError(TransferError):
    status_code = 400


class NoInputError(ValidationError):
    def __init__(self, message: str = "no files selected"):
        super().__init__(message)


# ----------------------------
# Local I/O
# ----------------------------

class TransferIOError(TransferError):
    status_code = 500


class IOStatError(TransferIOError):
    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"cannot stat {self.path}: {reason}")


class ArchiveError(TransferIOError):
    pass


class UploadError(TransferIOError):
    pass


# ----------------------------
# Session state (expected, user facing)
# ----------------------------

class StateError(TransferError):
    status_code = 410


class SessionExpired(StateError):
    def __init__(self, message: str = "Link Expired"):
        super().__init__(message)


class LimitExceeded(StateError):
    def __init__(self, message: str = "Limit Exceeded"):
        super().__init__(message)


class SessionStopped(StateError):
    def __init__(self, message: str = "No active share"):
        super().__init__(message)


class PasswordRejected(StateError):
    status_code = 401

    def __init__(self, message: str = "Missing/invalid code"):
        super().__init__(message)


# ----------------------------
# Network
# ----------------------------

class NetworkError(TransferError):
    status_code = 503


class NoFreePortError(NetworkError):
    def __init__(self, start: int, attempts: int):
        self.start = start
        self.attempts = attempts
        super().__init__(
            f"could not find an available port after {attempts} attempts (from {start})"
        )


class ListenerError(NetworkError):
    pass
