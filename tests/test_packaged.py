from __future__ import annotations

import json
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from apphook import packaged
from apphook.cancel import CancelToken, ScanCancelled
from apphook.models import AppSource

APPX = """<?xml version="1.0" encoding="utf-8"?>
<Package xmlns="http://schemas.microsoft.com/appx/manifest/foundation/windows10">
  <Properties>
    <DisplayName>{display}</DisplayName>
    <Logo>Assets/Logo.png</Logo>
  </Properties>
</Package>
"""


class FakeInventory:
    def __init__(self, output: str):
        self.output = output
        self.scripts = []

    def run(self, script, cancel=None):
        self.scripts.append(script)
        return self.output


def make_package(root: Path, folder: str, display=None, exe="App.exe", logo=True) -> Path:
    install = root / folder
    install.mkdir(parents=True)
    if display is not None:
        (install / "AppxManifest.xml").write_text(APPX.format(display=display), encoding="utf-8")
    if logo:
        (install / "Assets").mkdir()
        (install / "Assets" / "Logo.png").write_bytes(b"png")
    if exe:
        (install / exe).write_bytes(b"MZ")
    return install


def row(name, install, publisher="CN=Contoso Ltd, O=Contoso, C=US", version="1.2.3.0", arch=9):
    return {
        "Name": name,
        "InstallLocation": str(install),
        "Publisher": publisher,
        "Version": version,
        "Architecture": arch,
    }


def discover(rows, term=None, progress=None, cancel=None):
    inventory = FakeInventory(json.dumps(rows))
    return packaged.PackagedAppDiscoverer(inventory).discover(term, progress, cancel)


def test_parse_packages_accepts_object_array_and_garbage():
    single = packaged.parse_packages('{"Name": "A", "InstallLocation": "C:\\\\A"}')
    assert [p.name for p in single] == ["A"]
    many = packaged.parse_packages('[{"Name": "A"}, 5, {"Name": "B", "Architecture": 9}]')
    assert [p.name for p in many] == ["A", "B"]
    assert many[1].architecture == "9"
    assert packaged.parse_packages("") == []
    assert packaged.parse_packages("not json") == []
    assert packaged.parse_packages("42") == []


def test_normalize_publisher_strips_certificate_prefix():
    assert packaged.normalize_publisher("O=Thing, CN=Contoso Ltd") == "Contoso Ltd"
    assert packaged.normalize_publisher("Contoso") == "Contoso"
    assert packaged.normalize_publisher(None) is None


def test_discover_builds_records(tmp_path):
    install = make_package(tmp_path, "Contoso.Racer_1.0_x64", display="Contoso Racer")

    records = discover([row("Contoso.Racer", install)])

    assert len(records) == 1
    record = records[0]
    assert record.name == "Contoso Racer"
    assert record.exe_path == str(install / "App.exe")
    assert record.image_path == str(install / "Assets" / "Logo.png")
    assert record.publisher == "Contoso Ltd, O=Contoso, C=US"
    assert record.architecture == "9"
    assert record.source is AppSource.PACKAGED


def test_discover_falls_back_to_package_name_and_filters_noise(tmp_path):
    plain = make_package(tmp_path, "plain", display=None, logo=False)
    placeholder = make_package(tmp_path, "placeholder", display="ms-resource:AppName", logo=False)
    runtime = make_package(tmp_path, "runtime", display="Microsoft.WindowsAppRuntime.1.4", logo=False)

    records = discover(
        [
            row("Contoso.Plain", plain),
            row("Contoso.Placeholder", placeholder),
            row("Microsoft.WindowsAppRuntime.1.4", runtime),
        ]
    )

    assert [r.name for r in records] == ["Contoso.Placeholder", "Contoso.Plain"]
    assert records[1].image_path is None


def test_discover_term_matches_display_or_package_name(tmp_path):
    racer = make_package(tmp_path, "racer", display="Contoso Racer")
    notes = make_package(tmp_path, "notes", display="Notes")

    rows = [row("Contoso.Racer", racer), row("Fabrikam.Notepad", notes)]

    assert [r.name for r in discover(rows, term="RACER")] == ["Contoso Racer"]
    assert [r.name for r in discover(rows, term="fabrikam")] == ["Notes"]
    assert discover(rows, term="zzz") == []


def test_discover_uses_declared_executable(tmp_path):
    install = make_package(tmp_path, "game", display="Big Game", exe="Launcher.exe")
    nested = install / "Content" / "Binaries" / "BigGame.exe"
    nested.parent.mkdir(parents=True)
    nested.write_bytes(b"MZ")
    (install / "MicrosoftGame.config").write_text(
        '<Game><ExecutableList><Executable Name="Content\\Binaries\\BigGame.exe" /></ExecutableList></Game>',
        encoding="utf-8",
    )

    records = discover([row("Big.Game", install)])

    assert records[0].exe_path == str(nested)


def test_discover_declared_executable_missing_falls_back(tmp_path):
    install = make_package(tmp_path, "game", display="Big Game", exe="Launcher.exe")
    (install / "MicrosoftGame.config").write_text(
        '<Game><Executable Name="Gone.exe" /></Game>', encoding="utf-8"
    )

    records = discover([row("Big.Game", install)])

    assert records[0].exe_path == str(install / "Launcher.exe")


def test_discover_skips_missing_dirs_and_exes(tmp_path):
    no_exe = make_package(tmp_path, "noexe", display="No Exe", exe=None)

    rows = [
        row("Gone", tmp_path / "gone"),
        row("NoExe", no_exe),
        {"Name": "NoLocation"},
        {"Name": None, "InstallLocation": str(no_exe)},
    ]

    assert discover(rows) == []


def test_discover_dedupes_same_name_and_exe(tmp_path):
    install = make_package(tmp_path, "racer", display="Contoso Racer")

    records = discover([row("Contoso.Racer", install), row("contoso.racer", install)])

    assert len(records) == 1


def test_discover_reports_progress(tmp_path):
    install = make_package(tmp_path, "racer", display="Contoso Racer")
    messages = []

    discover([row("Contoso.Racer", install)], progress=messages.append)

    assert messages == ["Scanning UWP: Contoso Racer"]


def test_discover_empty_inventory_output():
    discoverer = packaged.PackagedAppDiscoverer(FakeInventory("   "))

    assert discoverer.discover() == []


def test_discover_cancelled(tmp_path):
    install = make_package(tmp_path, "racer", display="Contoso Racer")
    token = CancelToken()
    token.cancel()

    with pytest.raises(ScanCancelled):
        discover([row("Contoso.Racer", install)], cancel=token)
