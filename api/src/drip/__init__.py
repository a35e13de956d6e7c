"""Drip release of course modules.

Provides:
- Pure availability computation from enrollment date and drip offset
- Course catalog lookups (Cassandra)

Note: Router is imported directly in main.py to avoid circular imports.
"""

from .directory import CATALOG_TABLES_CQL, CourseDirectory, CourseModule
from .scheduler import DripStatus, check_module_availability, get_module_drip_status


__all__ = [
    "CATALOG_TABLES_CQL",
    "CourseDirectory",
    "CourseModule",
    "DripStatus",
    "check_module_availability",
    "get_module_drip_status",
]
