from __future__ import annotations

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
from pydantic import ValidationError

from apphook.models import AppRecord, AppSource, dedupe_records


def test_record_requires_name_and_path():
    with pytest.raises(ValidationError):
        AppRecord(name="  ", exe_path="C:\\a.exe")
    with pytest.raises(ValidationError):
        AppRecord(name="A", exe_path="")


def test_record_is_immutable():
    record = AppRecord(name=" Racer ", exe_path="C:\\racer.exe")

    assert record.name == "Racer"
    with pytest.raises(ValidationError):
        record.name = "Other"
    assert record.clone(source=AppSource.MANUAL).source is AppSource.MANUAL


def test_dedupe_is_case_insensitive_and_keeps_first():
    first = AppRecord(name="Racer", exe_path="C:\\Racer.exe", publisher="first")
    records = [
        AppRecord(name="zed", exe_path="C:\\z.exe"),
        first,
        AppRecord(name="RACER", exe_path="c:\\racer.EXE", publisher="second"),
        AppRecord(name="Racer", exe_path="D:\\racer.exe"),
    ]

    result = dedupe_records(records)

    assert [(r.name, r.exe_path) for r in result] == [
        ("Racer", "C:\\Racer.exe"),
        ("Racer", "D:\\racer.exe"),
        ("zed", "C:\\z.exe"),
    ]
    assert result[0] is first
