"""labor_dashboard package initializer.

This package contains the data aggregation layer behind the labor-market
demographic dashboard.  Modules include data-store access, snapshot
caching, metric and chart aggregation and the shared payload pipeline
served by ``app.py``.  See individual module docstrings for details.
"""

from .errors import DashboardError, DataStoreError
from .scope import Scope

__all__ = ["DashboardError", "DataStoreError", "Scope"]
