"""Test module for dataset handles and the Datafile."""

import pytest
import yaml
from datapack.datafile import Datafile, Handle, ident_string, parse_handle
from datapack.datapack_exceptions import InvalidHandle


def test_parse_handle_full():
    """Confirm author, name and version are parsed and lower-cased."""
    handle = parse_handle("JBenet/Foo@1.0")
    assert (handle.author, handle.name, handle.version) == ("jbenet", "foo", "1.0")
    assert handle.dataset() == "jbenet/foo@1.0"
    assert handle.path() == "jbenet/foo"


def test_parse_handle_default_version():
    """Confirm an omitted version means 'latest'."""
    handle = parse_handle("jbenet/foo")
    assert handle.version == "latest"
    assert str(handle) == "jbenet/foo@latest"


@pytest.mark.parametrize(
    "dataset",
    ["foo", "/foo", "jbenet/", "jbenet/foo@v1", "jb net/foo", "a/b/c", ""],
)
def test_parse_handle_invalid(dataset):
    """Confirm malformed identifiers raise InvalidHandle."""
    with pytest.raises(InvalidHandle):
        parse_handle(dataset)


def test_handle_parse_never_raises():
    """Confirm Handle.parse accepts anything and reports validity."""
    assert not Handle.parse("not a handle").valid()
    assert Handle.parse("a_b/c-d@2.10.3").valid()


def test_handle_equality():
    """Confirm handles compare by canonical form."""
    assert Handle.parse("JBENET/foo") == Handle("jbenet", "foo", "latest")
    assert Handle.parse("jbenet/foo@1.0") != Handle.parse("jbenet/foo@1.1")
    assert len({Handle.parse("jbenet/foo"), Handle.parse("jbenet/FOO@latest")}) == 1


def test_install_path(tmp_path):
    """Confirm a dataset installs under datasets/<author>/<name>."""
    handle = parse_handle("jbenet/foo@1.0")
    assert handle.install_path(str(tmp_path)) == str(tmp_path / "datasets" / "jbenet" / "foo")


@pytest.mark.parametrize(
    "value, expected",
    [("My Data", "my-data"), ("foo_bar-1", "foo_bar-1"), ("  Héllo!! World ", "h-llo-world")],
)
def test_ident_string(value, expected):
    """Confirm strings are sanitized into identifiers."""
    assert ident_string(value) == expected


def test_datafile_write_and_read(tmp_path):
    """Confirm a Datafile persists its fields with 'dataset' first and reloads them."""
    path = tmp_path / "Datafile"
    datafile = Datafile(str(path))
    datafile.set_handle(parse_handle("jbenet/foo@1.0"))
    datafile.tagline = "Foo of all kinds."
    datafile.dependencies = ["jbenet/bar@2.0"]
    datafile.write_file()

    text = path.read_text(encoding="utf-8")
    assert text.startswith("dataset: jbenet/foo@1.0\n")
    assert "description" not in text
    assert yaml.safe_load(text) == {
        "dataset": "jbenet/foo@1.0",
        "tagline": "Foo of all kinds.",
        "dependencies": ["jbenet/bar@2.0"],
    }

    reloaded = Datafile(str(path))
    assert reloaded.dataset == "jbenet/foo@1.0"
    assert reloaded.tagline == "Foo of all kinds."
    assert reloaded.license == ""
    assert reloaded.dependencies == ["jbenet/bar@2.0"]
    assert reloaded.valid()


def test_datafile_missing_file(tmp_path):
    """Confirm a missing Datafile loads empty and invalid."""
    datafile = Datafile(str(tmp_path / "Datafile"))
    assert datafile.dataset == ""
    assert not datafile.valid()


def test_datafile_not_a_mapping(tmp_path):
    """Confirm a Datafile holding a YAML list is rejected."""
    path = tmp_path / "Datafile"
    path.write_bytes(b"- a\n- b\n")
    with pytest.raises(ValueError):
        Datafile(str(path))


def test_valid_dependencies(tmp_path):
    """Confirm only well-formed dependencies are returned."""
    datafile = Datafile(str(tmp_path / "Datafile"))
    datafile.dependencies = ["jbenet/bar@2.0", "broken", "jbenet/baz"]
    assert datafile.valid_dependencies() == ["jbenet/bar@2.0", "jbenet/baz"]
