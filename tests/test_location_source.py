"""Tests for the file-backed location log source."""

from pathlib import Path

import pytest

from infrastructure.location_source import FileLocationSource


@pytest.mark.parametrize("ref", [None, "", "   "])
def test_no_reference_means_no_log(ref):
    assert FileLocationSource().open(ref) is None


def test_relative_paths_use_base_dir(tmp_path):
    assert FileLocationSource(tmp_path).resolve("history.json") == tmp_path / "history.json"


def test_absolute_paths_ignore_base_dir(tmp_path):
    target = tmp_path / "history.json"
    assert FileLocationSource("/elsewhere").resolve(str(target)) == target


def test_environment_variables_are_expanded(tmp_path, monkeypatch):
    monkeypatch.setenv("TIMELINE_DATA", str(tmp_path))
    assert FileLocationSource().resolve("$TIMELINE_DATA/h.json") == Path(tmp_path) / "h.json"


def test_open_reports_size(tmp_path):
    target = tmp_path / "history.json"
    target.write_bytes(b'{"locations": []}')
    opened = FileLocationSource().open(target)
    with opened.stream:
        assert opened.size_hint == 17
        assert opened.stream.read() == b'{"locations": []}'


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        FileLocationSource(tmp_path).open("missing.json")
