"""supamcp - bounded response projection for a management-API MCP gateway."""

__version__ = "0.1.0"
