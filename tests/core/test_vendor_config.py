"""Unit tests for core.vendor_config."""

import json
from pathlib import Path

import pytest

from dbrunner.core.errors import ErrorKind
from dbrunner.core.vendor_config import (
    VendorConfig,
    builtin_vendor_configs,
    load_vendor_configs,
    normalize_vendor_code,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("ORA-00942", "942"),
        ("00942", "942"),
        (942, "942"),
        ("-2", "-2"),
        ("P0001", "P0001"),
        ("  ", None),
        (None, None),
        (True, None),
    ],
)
def test_normalize_vendor_code(raw: object, expected: str | None) -> None:
    assert normalize_vendor_code(raw) == expected


def test_builtin_vendors_present() -> None:
    configs = builtin_vendor_configs()
    assert configs.names() == ["mysql", "oracle", "postgresql", "sqlserver"]
    assert configs.get("ORACLE").default_port == 1521
    assert configs.get("mysql").error_mappings["1062"] is ErrorKind.CONSTRAINT_VIOLATION


def test_unknown_vendor_gets_empty_config() -> None:
    config = builtin_vendor_configs().get("sybase")
    assert config.name == "sybase"
    assert config.error_mappings == {}
    assert config.url_templates == {}


def test_invalid_error_mapping_is_skipped() -> None:
    config = VendorConfig(
        name="x", error_mappings={"1": "not_a_kind", "2": "TIMEOUT", "ORA-00060": "transaction_failure"}
    )
    assert config.error_mappings == {
        "2": ErrorKind.TIMEOUT,
        "60": ErrorKind.TRANSACTION_FAILURE,
    }


def test_properties_are_stringified() -> None:
    config = VendorConfig(name="x", properties={"arraysize": 100, "ssl": True})
    assert config.properties == {"arraysize": "100", "ssl": "True"}


class TestLoadVendorConfigs:
    def test_no_path_returns_builtin(self) -> None:
        assert load_vendor_configs() is builtin_vendor_configs()

    def test_overlay_merges_dicts_and_replaces_scalars(self, tmp_path: Path) -> None:
        path = tmp_path / "vendors.json"
        path.write_text(
            json.dumps(
                {
                    "vendors": {
                        "MySQL": {
                            "default_port": 3307,
                            "error_mappings": {"1205": "transaction_failure"},
                            "properties": {"charset": "latin1"},
                        }
                    }
                }
            )
        )
        configs = load_vendor_configs(path)
        mysql = configs.get("mysql")
        assert mysql.default_port == 3307
        assert mysql.error_mappings["1205"] is ErrorKind.TRANSACTION_FAILURE
        # untouched entries survive the merge
        assert mysql.error_mappings["1062"] is ErrorKind.CONSTRAINT_VIOLATION
        assert mysql.properties["charset"] == "latin1"
        assert "direct" in mysql.url_templates
        # builtin set is not mutated
        assert builtin_vendor_configs().get("mysql").default_port == 3306

    def test_new_vendor_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "vendors.json"
        path.write_text(
            json.dumps(
                {
                    "vendors": {
                        "db2": {
                            "default_port": 50000,
                            "url_templates": {"direct": "db2://{host}:{port}/{database}"},
                        }
                    }
                }
            )
        )
        configs = load_vendor_configs(path)
        assert "db2" in configs.names()
        assert configs.get("db2").default_port == 50000

    def test_malformed_json(self, tmp_path: Path) -> None:
        path = tmp_path / "vendors.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid vendor config JSON"):
            load_vendor_configs(path)

    def test_vendor_entry_must_be_object(self, tmp_path: Path) -> None:
        path = tmp_path / "vendors.json"
        path.write_text(json.dumps({"vendors": {"mysql": 3306}}))
        with pytest.raises(ValueError, match="must be an object"):
            load_vendor_configs(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_vendor_configs(tmp_path / "missing.json")
