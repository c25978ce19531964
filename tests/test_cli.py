"""
Tests for the bagreplica command line.
"""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from bagreplica.cli.main_cli import main_app
from bagreplica.core.config import Settings
from bagreplica.core.exceptions import TransientStoreFailure
from bagreplica.descriptors.files import write_descriptor
from bagreplica.descriptors.schemas import (
    AssociatedGroup,
    Member,
    MetadataDocument,
    Person,
    RoleGraph,
    Value,
)
from bagreplica.replication.local_store import LocalObjectStore

runner = CliRunner()


@pytest.fixture
def test_settings(tmp_path):
    settings = Settings(
        store_backend="local",
        store_dir=str(tmp_path / "store"),
        odometer_dir=str(tmp_path / "store"),
        retry_backoff_base_ms=0,
    )
    with patch("bagreplica.cli.replica_cli.settings", settings):
        yield settings


@pytest.fixture
def bag(tmp_path):
    path = tmp_path / "bag-1.zip"
    path.write_bytes(b"packaged bag")
    return path


def test_transmit_and_fetch(test_settings, bag, tmp_path):
    result = runner.invoke(main_app, ["replica", "transmit", str(bag)])
    assert result.exit_code == 0, result.output
    assert "create" in result.output
    assert not bag.exists()

    result = runner.invoke(main_app, ["replica", "exists", "bag-1.zip"])
    assert result.exit_code == 0
    assert "present" in result.output

    dest = tmp_path / "restored.zip"
    result = runner.invoke(main_app, ["replica", "fetch", "bag-1.zip", str(dest)])
    assert result.exit_code == 0, result.output
    assert dest.read_bytes() == b"packaged bag"


def test_transmit_failure_keeps_file(test_settings, bag):
    with patch.object(LocalObjectStore, "write", side_effect=OSError("disk full")):
        result = runner.invoke(main_app, ["replica", "transmit", str(bag), "--max-retries", "1"])

    output = " ".join(result.output.split())
    assert result.exit_code == 1
    assert "2 attempt(s)" in output
    assert "Local file kept" in output
    assert bag.exists()


def test_exists_absent(test_settings):
    result = runner.invoke(main_app, ["replica", "exists", "nothing.zip"])
    assert result.exit_code == 1
    assert "absent" in result.output


def test_fetch_missing(test_settings, tmp_path):
    result = runner.invoke(main_app, ["replica", "fetch", "nothing.zip", str(tmp_path / "out.zip")])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_remove_and_odometer(test_settings, bag):
    runner.invoke(main_app, ["replica", "transmit", str(bag)])

    result = runner.invoke(main_app, ["replica", "remove", "bag-1.zip"])
    assert result.exit_code == 0
    assert "Removed bag-1.zip (12 bytes)" in result.output

    result = runner.invoke(main_app, ["replica", "odometer"])
    assert result.exit_code == 0
    assert "uploaded" in result.output


def test_trash(test_settings, bag):
    runner.invoke(main_app, ["replica", "transmit", str(bag)])
    result = runner.invoke(main_app, ["replica", "trash", "bag-1.zip"])
    assert result.exit_code == 0
    assert "aip_trash" in result.output


def test_descriptor_validate_and_show(tmp_path):
    path = write_descriptor(tmp_path, MetadataDocument(values=[
        Value(schema_name="dc", element="title", body="Example Title"),
    ]))

    result = runner.invoke(main_app, ["descriptor", "validate", str(path), "--kind", "metadata"])
    assert result.exit_code == 0, result.output
    assert "OK" in result.output

    result = runner.invoke(main_app, ["descriptor", "show", str(path), "-k", "metadata"])
    assert result.exit_code == 0
    assert "Example Title" in result.output


def test_descriptor_validate_strict_roles(tmp_path):
    graph = RoleGraph(
        groups=[AssociatedGroup(id="1", members=[Member(id="2")])],
        people=[Person(id="3")],
    )
    path = write_descriptor(tmp_path, graph)

    result = runner.invoke(main_app, ["descriptor", "validate", str(path), "--kind", "roles"])
    assert result.exit_code == 0

    result = runner.invoke(main_app, ["descriptor", "validate", str(path), "--kind", "roles", "--strict"])
    assert result.exit_code == 1
    assert "Invalid roles descriptor" in result.output


def test_descriptor_validate_malformed(tmp_path):
    path = tmp_path / "policy.xml"
    path.write_text('<policies><policy group="Anonymous"/></policies>')

    result = runner.invoke(main_app, ["descriptor", "validate", str(path), "--kind", "policy"])
    assert result.exit_code == 1
    assert "Invalid policy descriptor" in result.output


def test_fetch_empty_replica(test_settings, tmp_path):
    empty = tmp_path / "empty.zip"
    empty.write_bytes(b"")
    runner.invoke(main_app, ["replica", "transmit", str(empty)])

    dest = tmp_path / "restored-empty.zip"
    result = runner.invoke(main_app, ["replica", "fetch", "empty.zip", str(dest)])
    assert result.exit_code == 0, result.output
    assert "(0 bytes)" in " ".join(result.output.split())
    assert dest.exists()


@pytest.mark.parametrize("args", [
    ["replica", "exists", "bag-1.zip"],
    ["replica", "info", "bag-1.zip"],
    ["replica", "remove", "bag-1.zip"],
    ["replica", "trash", "bag-1.zip"],
])
def test_store_outage_reports_error(test_settings, args):
    outage = TransientStoreFailure("store unavailable")
    with patch.object(LocalObjectStore, "get_properties", side_effect=outage), \
            patch.object(LocalObjectStore, "read", side_effect=outage):
        result = runner.invoke(main_app, args)

    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert "store unavailable" in result.output
