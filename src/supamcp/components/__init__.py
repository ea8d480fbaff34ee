"""Tool handlers grouped by feature, plus the shared upstream call path."""

from supamcp.components.database_tools import DatabaseTools
from supamcp.components.debugging_tools import DebuggingTools
from supamcp.components.development_tools import DevelopmentTools
from supamcp.components.invoker import UpstreamInvoker

__all__ = [
    "DatabaseTools",
    "DebuggingTools",
    "DevelopmentTools",
    "UpstreamInvoker",
]
