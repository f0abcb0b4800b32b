"""
Vendor registry: name -> ``VendorCapability``.

A ``VendorRegistry`` is built once from a ``VendorConfigSet`` and never
mutated. Reloading builds a fresh registry and swaps the reference held by a
``RegistryHolder``; readers that already hold the old registry keep a
consistent view.
"""

import logging
import threading
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from dbrunner.core.config import settings
from dbrunner.core.errors import VendorNotFoundError
from dbrunner.core.vendor_config import VendorConfigSet, load_vendor_configs
from dbrunner.vendors.base import VendorCapability
from dbrunner.vendors.mysql import MySqlVendor
from dbrunner.vendors.oracle import OracleVendor
from dbrunner.vendors.postgresql import PostgreSqlVendor
from dbrunner.vendors.sqlserver import SqlServerVendor

_log = logging.getLogger(__name__)

VENDOR_CLASSES: dict[str, type[VendorCapability]] = {
    "oracle": OracleVendor,
    "postgresql": PostgreSqlVendor,
    "mysql": MySqlVendor,
    "sqlserver": SqlServerVendor,
}

_ALIASES = {
    "postgres": "postgresql",
    "pg": "postgresql",
    "mariadb": "mysql",
    "mssql": "sqlserver",
    "ora": "oracle",
}


def canonical_vendor_name(name: Any) -> str:
    """Lower-cased registry key for *name*, resolving aliases such as ``postgres``."""
    k = str(name or "").strip().lower()
    return _ALIASES.get(k, k)


class VendorRegistry:
    """Read-only lookup of vendor capabilities; safe for concurrent readers."""

    def __init__(self, vendors: Mapping[str, VendorCapability]) -> None:
        self._vendors = MappingProxyType({canonical_vendor_name(k): v for k, v in vendors.items()})

    @classmethod
    def from_configs(cls, configs: VendorConfigSet) -> "VendorRegistry":
        """One capability per configured vendor; unknown products get the generic base."""
        vendors: dict[str, VendorCapability] = {}
        for name in configs.names():
            vendor_cls = VENDOR_CLASSES.get(name, VendorCapability)
            vendors[name] = vendor_cls(configs.get(name))
        return cls(vendors)

    def get(self, name: str | None) -> VendorCapability | None:
        return self._vendors.get(canonical_vendor_name(name))

    def require(self, name: str | None) -> VendorCapability:
        vendor = self.get(name)
        if vendor is None:
            raise VendorNotFoundError(
                f"Unknown vendor {name!r}; registered: {', '.join(self.names())}"
            )
        return vendor

    def names(self) -> list[str]:
        return sorted(self._vendors)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and canonical_vendor_name(name) in self._vendors

    def __iter__(self) -> Iterator[VendorCapability]:
        return iter(self._vendors[n] for n in self.names())

    def __len__(self) -> int:
        return len(self._vendors)


def build_registry(config_path: str | Path | None = None) -> VendorRegistry:
    """Registry from built-in configs, overlaid with *config_path* or ``settings.VENDOR_CONFIG_FILE``."""
    path = config_path if config_path is not None else settings.VENDOR_CONFIG_FILE
    registry = VendorRegistry.from_configs(load_vendor_configs(path))
    _log.info("Vendor registry built: %s", ", ".join(registry.names()))
    return registry


class RegistryHolder:
    """Holds the current registry; ``reload`` replaces it in a single assignment."""

    def __init__(self, registry: VendorRegistry | None = None) -> None:
        self._lock = threading.Lock()
        self._registry = registry

    @property
    def current(self) -> VendorRegistry:
        reg = self._registry
        if reg is None:
            with self._lock:
                if self._registry is None:
                    self._registry = build_registry()
                reg = self._registry
        return reg

    def reload(
        self,
        configs: VendorConfigSet | None = None,
        *,
        config_path: str | Path | None = None,
    ) -> VendorRegistry:
        """Build a new registry (from *configs* or the config file) and swap it in."""
        if configs is not None:
            new = VendorRegistry.from_configs(configs)
        else:
            new = build_registry(config_path)
        with self._lock:
            self._registry = new
        _log.info("Vendor registry reloaded (%d vendors)", len(new))
        return new
