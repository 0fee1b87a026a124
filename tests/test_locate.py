import os
import subprocess
from types import SimpleNamespace

import pytest

import dsctl.locate as locate
from dsctl.locate import (
    CandidateDevice,
    DeviceNotFound,
    NodeUnavailable,
    find_devices,
    get_device_properties,
    matches_hid_id,
    matches_split_id,
    parse_properties,
    resolve_first_node,
    resolve_hidraw_node,
    scan_devices,
)

DS5_SPLIT = {"ID_VENDOR_ID": "054c", "ID_MODEL_ID": "0ce6"}
DS5_HID = {"HID_ID": "0005:0000054C:00000CE6"}


@pytest.fixture
def sysfs(tmp_path):
    """Builds a fake sysfs root with two input devices and two hid devices."""
    root = tmp_path / "sys"
    devs = {}
    for sub, names in (
        ("class/input", ["input3", "event12"]),
        ("bus/hid/devices", ["0005:054C:0CE6.0001", "0003:046D:C52B.0002"]),
    ):
        for name in names:
            d = root / sub / name
            d.mkdir(parents=True)
            devs[name] = os.path.realpath(d)
    return str(root), devs


def reader(props):
    return lambda syspath: props.get(syspath, {})


def test_scan_devices_order(sysfs):
    root, devs = sysfs
    assert list(scan_devices(sys_root=root)) == [
        ("input", devs["event12"]),
        ("input", devs["input3"]),
        ("hid", devs["0003:046D:C52B.0002"]),
        ("hid", devs["0005:054C:0CE6.0001"]),
    ]


def test_scan_devices_missing_root(tmp_path):
    assert list(scan_devices(sys_root=str(tmp_path / "nothing"))) == []


def test_matches_split_id():
    assert matches_split_id(DS5_SPLIT)
    assert matches_split_id({"ID_VENDOR_ID": "054c", "ID_MODEL_ID": "0df2"})
    assert not matches_split_id({"ID_VENDOR_ID": "054C", "ID_MODEL_ID": "0CE6"})
    assert not matches_split_id({"ID_VENDOR_ID": "054c"})
    assert not matches_split_id({"ID_VENDOR_ID": "046d", "ID_MODEL_ID": "0ce6"})
    assert not matches_split_id(DS5_SPLIT, products=[0x0DF2])


def test_matches_hid_id():
    assert matches_hid_id(DS5_HID)
    assert matches_hid_id({"HID_ID": "0005:0000054C:00000DF2"})
    # Only the exact formatting of the combined id is accepted
    assert not matches_hid_id({"HID_ID": "0005:0000054c:00000ce6"})
    assert not matches_hid_id({"HID_ID": "0005:054C:0CE6"})
    assert not matches_hid_id({"HID_ID": "0003:0000054C:00000CE6"})
    assert not matches_hid_id(DS5_SPLIT)


def test_find_devices_either_encoding(sysfs):
    root, devs = sysfs
    props = {
        devs["input3"]: DS5_SPLIT,
        devs["event12"]: {"ID_VENDOR_ID": "046d", "ID_MODEL_ID": "c52b"},
        devs["0005:054C:0CE6.0001"]: DS5_HID,
        devs["0003:046D:C52B.0002"]: {"HID_ID": "0003:0000046D:0000C52B"},
    }
    found = find_devices(sys_root=root, properties=reader(props))

    assert [d.syspath for d in found] == [
        devs["input3"],
        devs["0005:054C:0CE6.0001"],
    ]
    assert found[0].subsystem == "input"
    assert found[0].vendor_id == "054c" and found[0].model_id == "0ce6"
    assert found[0].hid_id is None
    assert found[1].subsystem == "hid"
    assert found[1].hid_id == "0005:0000054C:00000CE6"


def test_find_devices_none(sysfs):
    root, devs = sysfs
    props = {devs["input3"]: {"ID_VENDOR_ID": "046d", "ID_MODEL_ID": "c52b"}}
    assert find_devices(sys_root=root, properties=reader(props)) == []


def test_find_devices_empty_host(tmp_path):
    assert find_devices(sys_root=str(tmp_path), properties=reader({})) == []


def test_resolve_hidraw_node(tmp_path):
    dev = tmp_path / "0005:054C:0CE6.0001"
    (dev / "hidraw" / "hidraw7").mkdir(parents=True)
    (dev / "hidraw" / "hidraw3").mkdir(parents=True)

    assert resolve_hidraw_node(str(dev)) == "/dev/hidraw3"
    cand = CandidateDevice(str(dev), "hid", DS5_HID)
    assert resolve_hidraw_node(cand) == "/dev/hidraw3"


def test_resolve_hidraw_node_unavailable(tmp_path):
    dev = tmp_path / "input3"
    dev.mkdir()
    with pytest.raises(NodeUnavailable) as e:
        resolve_hidraw_node(str(dev))
    assert e.value.syspath == str(dev)

    (dev / "hidraw").mkdir()
    with pytest.raises(NodeUnavailable):
        resolve_hidraw_node(str(dev))


def test_resolve_first_node(tmp_path):
    bad = tmp_path / "input3"
    bad.mkdir()
    good = tmp_path / "0005:054C:0CE6.0001"
    (good / "hidraw" / "hidraw5").mkdir(parents=True)

    devs = [
        CandidateDevice(str(bad), "input", DS5_SPLIT),
        CandidateDevice(str(good), "hid", DS5_HID),
    ]
    assert resolve_first_node(devs) == "/dev/hidraw5"

    with pytest.raises(NodeUnavailable):
        resolve_first_node(devs[:1])
    with pytest.raises(DeviceNotFound):
        resolve_first_node([])


def test_parse_properties():
    assert parse_properties(
        "DEVPATH=/devices/x\nHID_ID=0005:0000054C:00000CE6\n\ngarbage\nHID_UNIQ=\n"
    ) == {
        "DEVPATH": "/devices/x",
        "HID_ID": "0005:0000054C:00000CE6",
        "HID_UNIQ": "",
    }


def test_get_device_properties(tmp_path, monkeypatch):
    dev = tmp_path / "input3"
    dev.mkdir()
    (dev / "uevent").write_text("PRODUCT=5/54c/ce6/8100\nNAME=\"DualSense\"\n")

    calls = []

    def run(cmd, capture_output):
        calls.append(cmd)
        return SimpleNamespace(
            returncode=0,
            stdout=b"ID_VENDOR_ID=054c\nID_MODEL_ID=0ce6\nNAME=\"Wireless\"\n",
            stderr=b"",
        )

    monkeypatch.setattr(locate.subprocess, "run", run)
    props = get_device_properties(str(dev))

    assert calls == [["udevadm", "info", "--query=property", f"--path={dev}"]]
    assert props["PRODUCT"] == "5/54c/ce6/8100"
    assert props["NAME"] == '"Wireless"'
    assert matches_split_id(props)


def test_get_device_properties_udevadm_failures(tmp_path, monkeypatch):
    dev = tmp_path / "0005:054C:0CE6.0001"
    dev.mkdir()
    (dev / "uevent").write_text("HID_ID=0005:0000054C:00000CE6\n")

    def missing(cmd, capture_output):
        raise FileNotFoundError("udevadm")

    monkeypatch.setattr(locate.subprocess, "run", missing)
    assert get_device_properties(str(dev)) == DS5_HID

    def failing(cmd, capture_output):
        return subprocess.CompletedProcess(cmd, 1, b"", b"Unknown device")

    monkeypatch.setattr(locate.subprocess, "run", failing)
    assert get_device_properties(str(dev)) == DS5_HID

    monkeypatch.setattr(locate.subprocess, "run", missing)
    assert get_device_properties(str(tmp_path / "gone")) == {}


def test_empty_products_match_nothing(sysfs):
    assert not matches_split_id(DS5_SPLIT, products=())
    assert not matches_hid_id(DS5_HID, products=())
    assert not matches_hid_id({"HID_ID": "0003:0000046D:0000C52B"}, products=())

    root, devs = sysfs
    props = {
        devs["input3"]: DS5_SPLIT,
        devs["0005:054C:0CE6.0001"]: DS5_HID,
        devs["0003:046D:C52B.0002"]: {"HID_ID": "0003:0000046D:0000C52B"},
    }
    assert find_devices(products=(), sys_root=root, properties=reader(props)) == []


def test_get_device_properties_invalid_utf8(tmp_path, monkeypatch):
    dev = tmp_path / "0005:054C:0CE6.0001"
    dev.mkdir()
    (dev / "uevent").write_bytes(
        b'NAME="Pad \xff\xfe"\nHID_ID=0005:0000054C:00000CE6\n'
    )

    def run(cmd, capture_output):
        return subprocess.CompletedProcess(
            cmd, 0, b'ID_MODEL=Pad\xff\nID_SERIAL=\xfe\xfe\n', b""
        )

    monkeypatch.setattr(locate.subprocess, "run", run)
    props = get_device_properties(str(dev))
    assert props["HID_ID"] == "0005:0000054C:00000CE6"
    assert props["NAME"].startswith('"Pad ')
    assert props["ID_MODEL"] == "Pad\ufffd"


def test_find_devices_invalid_utf8(sysfs, monkeypatch):
    root, devs = sysfs
    with open(os.path.join(devs["0005:054C:0CE6.0001"], "uevent"), "wb") as f:
        f.write(b'NAME="Pad \xff\xfe"\nHID_ID=0005:0000054C:00000CE6\n')
    with open(os.path.join(devs["input3"], "uevent"), "wb") as f:
        f.write(b'NAME="\xc3"\nPRODUCT=3/46d/c52b/111\n')

    def missing(cmd, capture_output):
        raise FileNotFoundError("udevadm")

    monkeypatch.setattr(locate.subprocess, "run", missing)
    found = find_devices(sys_root=root)
    assert [d.syspath for d in found] == [devs["0005:054C:0CE6.0001"]]
