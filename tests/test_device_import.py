import pytest

from device_import import parse_devices_csv
from errors import ValidationError
from schemas import SensorConfig

from conftest import TODAY


def test_import_single_row(store):
    count = len(store.devices)
    result = store.import_devices("id,name,location\nDEV010,Soil Sensor,Greenhouse", today=TODAY)
    assert [d.id for d in result.added] == ["DEV010"]
    assert len(store.devices) == count + 1
    device = store.get_device("DEV010")
    assert device.status == "Offline"
    assert device.name == "Soil Sensor"
    assert device.location == "Greenhouse"
    assert device.configuration == SensorConfig()
    assert device.billing.payment_status == "Current"
    assert device.billing.last_payment == TODAY


def test_missing_required_column_aborts_import(store):
    before = dict(store.devices)
    with pytest.raises(ValidationError, match="id, name, and location"):
        store.import_devices("id,name\nDEV010,Soil Sensor")
    assert store.devices == before


def test_header_is_case_insensitive_and_order_free():
    drafts, skipped = parse_devices_csv(" Location ,NAME,Id,notes\nGreenhouse,Soil Sensor,DEV011,spare\n")
    assert skipped == []
    (lineno, draft), = drafts
    assert lineno == 2
    assert (draft.id, draft.name, draft.location) == ("DEV011", "Soil Sensor", "Greenhouse")


def test_bad_rows_are_skipped_individually():
    text = "\n".join([
        "id,name,location",
        "DEV020,Door Sensor,Garage",
        "",
        "DEV021,Short",
        " ,No Id,Hall",
        "DEV022,  ,Hall",
        "DEV023,Water Meter,Basement",
    ])
    drafts, skipped = parse_devices_csv(text)
    assert [d.id for _, d in drafts] == ["DEV020", "DEV023"]
    assert [row.line for row in skipped] == [4, 5, 6]
    assert "missing id" in skipped[1].reason


def test_windows_line_endings():
    drafts, _ = parse_devices_csv("id,name,location\r\nDEV030,Lamp,Porch\r\n")
    assert drafts[0][1].location == "Porch"


def test_commas_are_never_quoted():
    drafts, _ = parse_devices_csv('id,name,location\nDEV031,"Sensor, big",Lab')
    assert drafts[0][1].name == '"Sensor'
    assert drafts[0][1].location == 'big"'


def test_nothing_importable_is_an_error(store):
    with pytest.raises(ValidationError, match="No valid devices"):
        store.import_devices("id,name,location\n,,\n")
    with pytest.raises(ValidationError):
        store.import_devices("")


def test_existing_ids_are_skipped_not_fatal(store):
    result = store.import_devices("id,name,location\nDEV001,Clash,Somewhere\nDEV040,Fresh,Attic\nDEV040,Again,Attic")
    assert [d.id for d in result.added] == ["DEV040"]
    assert [(row.line, row.reason) for row in result.skipped] == [
        (2, "duplicate device id DEV001"),
        (4, "duplicate device id DEV040"),
    ]
    assert store.get_device("DEV001").name == "Temperature Sensor"
