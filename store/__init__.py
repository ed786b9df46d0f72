"""
Store Module

Single-table persistence layer for build server records.

This module provides:
- Typed records with per-field modification tracking
- Type coercion between record values and storage scalars
- Parameterized SELECT/COUNT/INSERT/UPDATE/DELETE rendering
- A generic Store base and concrete table mappers
- Read/write connection routing over SQLite
"""

__version__ = "0.1.0"
