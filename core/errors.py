"""Error taxonomy shared by the core, the API and the Streamlit UI."""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for every error raised by this project."""


class DataUnavailable(DashboardError):
    """A fetch or tab listing failed; the UI offers a retry."""


class FetchError(DataUnavailable):
    pass


class NotFound(FetchError):
    pass


class PermissionDenied(FetchError):
    pass


class InvalidRange(FetchError):
    pass


class EmptyDataset(DashboardError):
    """Zero headers or zero rows: render a placeholder, no charts."""


class InvalidKeyBinding(DashboardError):
    def __init__(self, key: str, headers) -> None:
        super().__init__(f"Column {key!r} is not one of {list(headers)}")
        self.key = key


class ComputationDegenerate(DashboardError):
    """A computation has too little input to be meaningful (feature is omitted)."""


class ValidationError(DashboardError):
    pass


class AuthError(DashboardError):
    pass


class InvalidCredentials(AuthError):
    pass


class Unauthenticated(AuthError):
    pass


class DuplicateUser(AuthError):
    pass


class RecordNotFound(DashboardError):
    pass
