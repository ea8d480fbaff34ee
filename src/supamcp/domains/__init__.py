"""Domain-Driven Design bounded contexts for supamcp.

This package contains the DDD implementation for:
- Response Optimization Context: field projection, filtering and token budgets
- Query Governor Context: automatic LIMIT injection for unbounded SELECTs
- Response Cache Context: TTL/LRU memoization of read-only tool results
"""
