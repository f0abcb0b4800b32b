"""
Vendor capabilities for Oracle, PostgreSQL, MySQL and SQL Server, and the registry.
"""

from .base import ConnectionTarget, VendorCapability
from .mysql import MySqlVendor
from .oracle import OracleVendor
from .postgresql import PostgreSqlVendor
from .registry import RegistryHolder, VendorRegistry, build_registry, canonical_vendor_name
from .sqlserver import SqlServerVendor

__all__ = [
    "ConnectionTarget",
    "VendorCapability",
    "OracleVendor",
    "PostgreSqlVendor",
    "MySqlVendor",
    "SqlServerVendor",
    "VendorRegistry",
    "RegistryHolder",
    "build_registry",
    "canonical_vendor_name",
]
