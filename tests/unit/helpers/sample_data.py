"""Canned upstream payloads shaped like management API responses."""

from __future__ import annotations

from typing import Any, Dict, List


def make_table(
    name: str,
    rows: int = 0,
    schema: str = "public",
    columns: int = 2,
    relationships: int = 0,
    comment: str = "",
) -> Dict[str, Any]:
    return {
        "id": abs(hash(name)) % 100000,
        "schema": schema,
        "name": name,
        "rls_enabled": True,
        "rls_forced": False,
        "replica_identity": "DEFAULT",
        "bytes": 16384,
        "size": "16 kB",
        "live_rows_estimate": rows,
        "dead_rows_estimate": 0,
        "comment": comment or None,
        "columns": [
            {
                "id": f"1.{index}",
                "table_id": 1,
                "schema": schema,
                "table": name,
                "name": f"col_{index}",
                "ordinal_position": index,
                "data_type": "text",
                "default_value": None,
                "is_identity": index == 0,
                "is_generated": False,
                "is_nullable": index != 0,
                "is_updatable": True,
                "is_unique": index == 0,
                "comment": None,
            }
            for index in range(columns)
        ],
        "primary_keys": [
            {"schema": schema, "table_name": name, "name": "col_0", "table_id": 1},
        ],
        "relationships": [
            {
                "id": index,
                "constraint_name": f"{name}_fk_{index}",
                "source_schema": schema,
                "source_table_name": name,
                "source_column_name": "col_1",
                "target_table_schema": schema,
                "target_table_name": "users",
                "target_column_name": "col_0",
            }
            for index in range(relationships)
        ],
    }


SAMPLE_TABLES: List[Dict[str, Any]] = [
    make_table("users", rows=5000, relationships=0, comment="Application users"),
    make_table("user_logs", rows=250000, relationships=1),
    make_table("auth_users", rows=50),
    make_table("orders", rows=1200, relationships=2),
]

SAMPLE_EXTENSIONS: List[Dict[str, Any]] = [
    {"name": "pgcrypto", "schema": "extensions", "default_version": "1.3",
     "installed_version": "1.3", "comment": "cryptographic functions"},
    {"name": "pg_stat_statements", "schema": "extensions", "default_version": "1.10",
     "installed_version": "1.10", "comment": "track planning and execution statistics"},
    {"name": "postgis", "schema": None, "default_version": "3.3.2",
     "installed_version": None, "comment": "PostGIS geometry and geography types"},
]

SAMPLE_MIGRATIONS: List[Dict[str, Any]] = [
    {"version": "20240101000000", "name": "create_users"},
    {"version": "20240102000000", "name": "create_orders"},
]

SAMPLE_LOGS: List[Dict[str, Any]] = [
    {"timestamp": "2024-01-01T10:00:00Z", "level": "info",
     "msg": "User login successful", "user_id": "123", "service": "auth"},
    {"timestamp": "2024-01-01T10:01:00Z", "level": "error",
     "msg": "Database connection failed", "error": "Connection timeout", "service": "postgres"},
    {"timestamp": "2024-01-01T10:02:00Z", "level": "warn",
     "msg": "High memory usage detected", "memory_usage": "85%", "service": "api"},
    {"timestamp": "2024-01-01T10:03:00Z", "level": "debug",
     "msg": "Cache hit for user profile", "cache_key": "user:123:profile", "service": "api"},
    {"timestamp": "2024-01-01T10:04:00Z", "level": "error",
     "msg": "Function execution failed", "error": "Invalid payment method",
     "service": "edge-function"},
]

SAMPLE_SECURITY_ADVISORS: List[Dict[str, Any]] = [
    {
        "name": "rls_disabled_in_public",
        "title": "RLS Disabled in Public",
        "level": "ERROR",
        "categories": ["SECURITY"],
        "description": "Detects cases where row level security (RLS) has not been enabled on "
                       "tables in schemas exposed to PostgREST, which lets anyone with the "
                       "anon key read and write every row of the table.",
        "remediation": "https://supabase.com/docs/guides/database/database-linter?lint=0013",
        "cache_key": "rls_disabled_in_public_public_users",
    },
    {
        "name": "function_search_path_mutable",
        "title": "Function Search Path Mutable",
        "level": "WARN",
        "categories": ["SECURITY"],
        "description": "Detects functions where the search_path parameter is not set.",
        "remediation": "https://supabase.com/docs/guides/database/database-linter?lint=0011",
        "cache_key": "function_search_path_mutable_public_handle_new_user",
    },
]

SAMPLE_PERFORMANCE_ADVISORS: List[Dict[str, Any]] = [
    {
        "title": "Missing Database Index",
        "severity": "high",
        "category": "performance",
        "description": "Query on users.email column would benefit from an index because it is "
                       "used in a frequent equality filter on a table with many rows.",
        "remediation_url": "https://supabase.com/docs/guides/performance/indexes",
    },
    {
        "title": "Large Table Without Partitioning",
        "severity": "low",
        "category": "performance",
        "description": "Table logs has over 1M rows and could benefit from partitioning.",
        "remediation_url": "https://supabase.com/docs/guides/performance/partitioning",
    },
]

SAMPLE_TYPES = '''export type Json = string | number | boolean | null

export type Database = {
  public: {
    Tables: {
      users: {
        Row: {
          id: string
          email: string
        }
        Insert: {
          id?: string
          email: string
        }
      }
      user_logs: {
        Row: {
          id: number
          message: string
        }
      }
      orders: {
        Row: {
          id: number
          total: number
        }
      }
    }
    Views: {
      active_users: {
        Row: {
          id: string | null
        }
      }
    }
    Functions: {
      [_ in never]: never
    }
    Enums: {
      order_status: "pending" | "paid" | "shipped"
    }
    CompositeTypes: {
      [_ in never]: never
    }
  }
  storage: {
    Tables: {
      buckets: {
        Row: {
          id: string
        }
      }
    }
    Views: {
      [_ in never]: never
    }
    Enums: {
      [_ in never]: never
    }
  }
}
'''
