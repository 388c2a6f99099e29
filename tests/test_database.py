from __future__ import annotations

import json
import os
import stat
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from apphook.database import GAME_ENTRY_TEMPLATE, DatabaseError, DatabaseStore
from apphook.models import AppRecord, AppSource


def rec(name, exe, source=AppSource.INSTALLED, image=None):
    return AppRecord(name=name, exe_path=exe, source=source, image_path=image)


def write_doc(store: DatabaseStore, games, engines=None, **extra):
    store.base_dir.mkdir(parents=True, exist_ok=True)
    payload = {"engines": engines if engines is not None else [], "games": games, **extra}
    store.path.write_text(json.dumps(payload), encoding="utf-8")


def read_doc(store: DatabaseStore):
    return json.loads(store.path.read_text(encoding="utf-8"))


@pytest.fixture()
def store(tmp_path):
    return DatabaseStore(tmp_path / "AMD" / "CN")


def test_add_creates_document_with_template(store):
    result = store.add([rec("Racer", "C:\\Games\\racer.exe")])

    assert result == (1, 0)
    doc = read_doc(store)
    assert doc["engines"] == []
    (entry,) = doc["games"]
    assert set(entry) == set(GAME_ENTRY_TEMPLATE)
    assert entry["title"] == "Racer"
    assert entry["exe_path"] == "C:\\Games\\racer.exe"
    assert entry["image_info"] == "C:\\Games\\racer.exe"
    assert entry["manual"] == "FALSE"
    assert entry["guid"]


def test_add_marks_manual_and_uses_image(store):
    store.add([rec("Tool", "C:\\tool.exe", AppSource.MANUAL, image="C:\\logo.png")])

    entry = read_doc(store)["games"][0]
    assert entry["manual"] == "TRUE"
    assert entry["image_info"] == "C:\\logo.png"


def test_add_skips_on_title_or_path_collision(store):
    write_doc(store, [{"title": "Foo", "exe_path": "C:\\A.exe"}])

    assert store.add([rec("foo", "C:\\B.exe")]) == (0, 1)
    assert store.add([rec("Bar", "c:\\a.EXE")]) == (0, 1)
    assert store.add([rec("Bar", "C:\\B.exe"), rec("BAR", "C:\\C.exe"), rec("Baz", "c:\\b.exe")]) == (1, 2)
    assert [g["title"] for g in read_doc(store)["games"]] == ["Foo", "Bar"]


def test_add_preserves_unknown_fields_and_engines(store):
    engines = [{"name": "dx12", "opaque": [1, 2]}]
    custom = {"title": "Old", "exe_path": "C:\\old.exe", "custom_field": {"nested": True}, "averageFPS": 144}
    write_doc(store, [custom], engines=engines, version=7)

    store.add([rec("New", "C:\\new.exe")])

    doc = read_doc(store)
    assert doc["engines"] == engines
    assert doc["version"] == 7
    assert doc["games"][0] == custom


def test_add_unique_guids(store):
    store.add([rec("A", "C:\\a.exe"), rec("B", "C:\\b.exe")])

    guids = [g["guid"] for g in read_doc(store)["games"]]
    assert len(set(guids)) == 2


def test_add_empty_batch_does_not_create_file(store):
    assert store.add([]) == (0, 0)
    assert not store.exists()


def test_add_refuses_to_overwrite_broken_document(store):
    store.write_raw("{ not json")

    with pytest.raises(DatabaseError):
        store.add([rec("A", "C:\\a.exe")])
    assert store.read_raw() == "{ not json"


def test_add_rereads_external_edits(store):
    store.add([rec("A", "C:\\a.exe")])
    doc = read_doc(store)
    doc["games"].append({"title": "Edited", "exe_path": "C:\\edited.exe"})
    store.path.write_text(json.dumps(doc), encoding="utf-8")

    assert store.add([rec("Edited", "C:\\other.exe")]) == (0, 1)


def test_remove_preserves_order(store):
    write_doc(store, [{"title": "A"}, {"title": "B", "x": 1}, {"title": "C"}])

    assert store.remove(["b"]) == 1
    assert read_doc(store)["games"] == [{"title": "A"}, {"title": "C"}]


def test_remove_without_document_or_titles(store):
    assert store.remove(["A"]) == 0
    write_doc(store, [])
    assert store.remove(["A"]) == 0
    assert store.remove([]) == 0


def test_reset_then_add_leaves_only_new_entry(store):
    write_doc(store, [{"title": "Old", "exe_path": "C:\\old.exe"}])

    store.reset()
    store.reset()
    store.add([rec("X", "C:\\x.exe")])

    assert [g["title"] for g in read_doc(store)["games"]] == ["X"]


def test_titles_queries(store):
    assert store.load_titles() == set()
    assert store.load_titles_ordered() == []
    write_doc(store, [{"title": "beta"}, {"title": "Alpha"}, {"title": ""}, {"nope": 1}, "junk"])

    assert store.load_titles() == {"beta", "Alpha"}
    assert store.load_titles_ordered() == ["Alpha", "beta"]


def test_titles_on_malformed_document(store):
    store.write_raw("[1, 2, 3]")

    assert store.load_titles() == set()
    assert store.load_titles_ordered() == []
    assert store.verify() == (0, 0)


def test_verify_counts_missing_executables(store, tmp_path):
    present = []
    for name in ("a.exe", "b.exe"):
        path = tmp_path / name
        path.write_bytes(b"MZ")
        present.append(str(path))
    write_doc(
        store,
        [
            {"title": "A", "exe_path": present[0]},
            {"title": "B", "exe_path": present[1]},
            {"title": "C", "exe_path": str(tmp_path / "deleted.exe")},
            {"title": "D", "exe_path": ""},
        ],
    )

    assert store.verify() == (3, 1)


def test_backup_and_restore(store):
    with pytest.raises(FileNotFoundError):
        store.backup()
    with pytest.raises(FileNotFoundError):
        store.restore()

    store.add([rec("A", "C:\\a.exe")])
    store.backup()
    store.add([rec("B", "C:\\b.exe")])
    assert store.load_titles() == {"A", "B"}

    store.restore()
    assert store.load_titles() == {"A"}
    assert store.backup_path.read_bytes() == store.path.read_bytes()


def test_raw_round_trip_is_exact(store):
    text = '{\r\n  "games": [],\n\t"engines": []   }\n\u00e9'

    store.write_raw(text)

    assert store.read_raw() == text


def test_read_raw_missing(store):
    assert store.read_raw() == ""


def test_null_engines_are_passed_through(store):
    store.base_dir.mkdir(parents=True, exist_ok=True)
    store.path.write_text(
        json.dumps({"engines": None, "games": [{"title": "Old", "exe_path": "C:\\old.exe"}]}),
        encoding="utf-8",
    )

    assert store.load_titles() == {"Old"}
    assert store.add([rec("New", "C:\\new.exe")]) == (1, 0)

    doc = read_doc(store)
    assert doc["engines"] is None
    assert [g["title"] for g in doc["games"]] == ["Old", "New"]


def test_object_engines_and_null_games(store):
    store.base_dir.mkdir(parents=True, exist_ok=True)
    store.path.write_text(json.dumps({"engines": {"dx12": 1}, "games": None}), encoding="utf-8")

    assert store.load_titles() == set()
    assert store.add([rec("New", "C:\\new.exe")]) == (1, 0)

    doc = read_doc(store)
    assert doc["engines"] == {"dx12": 1}
    assert [g["title"] for g in doc["games"]] == ["New"]


def test_save_keeps_top_level_key_order(store):
    store.base_dir.mkdir(parents=True, exist_ok=True)
    store.path.write_text(json.dumps({"version": 7, "games": [], "engines": [], "zz": "x"}), encoding="utf-8")

    store.add([rec("A", "C:\\a.exe")])

    assert list(read_doc(store)) == ["version", "games", "engines", "zz"]


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_save_keeps_existing_file_mode(store):
    write_doc(store, [])
    store.path.chmod(0o664)

    store.add([rec("A", "C:\\a.exe")])

    assert stat.S_IMODE(store.path.stat().st_mode) == 0o664


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_new_database_is_not_private(store):
    store.add([rec("A", "C:\\a.exe")])

    assert stat.S_IMODE(store.path.stat().st_mode) == 0o644


def test_title_lookup_ignores_case(store):
    write_doc(store, [{"title": "Racer"}])

    assert store.load_titles() == {"Racer"}
    assert store.has_title("RACER")
    assert not store.has_title("Notes")
