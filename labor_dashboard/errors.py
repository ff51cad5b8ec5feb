"""Exception types raised by the dashboard data layer."""


class DashboardError(Exception):
    """Base class for failures while building dashboard data."""


class DataStoreError(DashboardError):
    """A query against the backing data store failed.

    Any network, HTTP or decoding problem surfaces as this error so the
    whole request fails as one unit; no partial payload is produced.
    """

    def __init__(self, message: str, *, table: str | None = None):
        super().__init__(message)
        self.table = table
