"""
Connection health check for external DBs.
"""

from typing import Any

from dbrunner.vendors.base import VendorCapability


def health_check(conn: Any, vendor: VendorCapability) -> bool:
    """True if the vendor's validation query yields a row on *conn*."""
    return vendor.validate_connection(conn)
