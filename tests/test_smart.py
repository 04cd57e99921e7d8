import pytest

from diskscan.ata import SmartAttribute, parse_smart_read_data
from diskscan.smart import (
    SmartAttrInfo,
    SmartAttrType,
    SmartTable,
    Temperature,
    get_num_crc_errors,
    get_num_pending_reallocations,
    get_num_reallocations,
    get_power_on_hours,
    get_temperature,
    smart_table_for_disk,
)


def _smart_page(entries):
    buf = bytearray(512)
    buf[0:2] = (0x10).to_bytes(2, "little")
    for i, (attr_id, status, value, worst, raw) in enumerate(entries):
        off = 2 + 12 * i
        buf[off] = attr_id
        buf[off + 1:off + 3] = status.to_bytes(2, "little")
        buf[off + 3] = value
        buf[off + 4] = worst
        buf[off + 5:off + 11] = raw.to_bytes(6, "little")
    buf[511] = (-sum(buf[:511])) & 0xFF
    return bytes(buf)


@pytest.fixture
def table():
    return smart_table_for_disk(None, None, None)


@pytest.fixture
def attrs():
    page = _smart_page(
        [
            (1, 0x000F, 100, 100, 0),
            (5, 0x0033, 100, 100, 12),
            (9, 0x0032, 90, 90, 8760),
            (194, 0x0022, 115, 100, 35 | (20 << 16) | (45 << 32)),
            (197, 0x0012, 100, 100, 3),
            (199, 0x003E, 200, 200, 7),
        ]
    )
    return parse_smart_read_data(page)


def test_default_table_contents(table):
    assert len(table) == 26
    assert table.attr_for_id(194).name == "Temperature"
    assert table.attr_for_id(194).offset == 150
    assert table.attr_for_id(6) is None


def test_attr_for_type_returns_first_match(table):
    assert table.attr_for_type(SmartAttrType.NONE).id == 1
    assert table.attr_for_type(SmartAttrType.CRC_ERRORS).id == 199
    assert table.attr_for_type(SmartAttrType.POH).name == "Power On Hours"


def test_table_is_same_for_any_disk(table):
    assert smart_table_for_disk("ATA", "Some Model", "1.0") is table


def test_key_attributes(attrs, table):
    assert len(attrs) == 6
    assert get_temperature(attrs, table) == Temperature(35, 20, 45)
    assert get_power_on_hours(attrs, table) == 8760
    assert get_num_reallocations(attrs, table) == 12
    assert get_num_pending_reallocations(attrs, table) == 3
    assert get_num_crc_errors(attrs, table) == 7


def test_temperature_from_offset_when_raw_is_zero(table):
    attrs = [SmartAttribute(id=194, status=0, value=110, min=100, raw=0)]
    assert get_temperature(attrs, table) == Temperature(current=40)


def test_temperature_with_inconsistent_extremes(table):
    raw = 30 | (40 << 16) | (50 << 32)
    attrs = [SmartAttribute(id=194, status=0, value=110, min=100, raw=raw)]
    result = get_temperature(attrs, table)
    assert result == Temperature(current=30)
    assert result.min is None and result.max is None


def test_missing_attributes_give_none(table):
    attrs = [SmartAttribute(id=1, status=0, value=100, min=100, raw=0)]
    assert get_temperature(attrs, table) is None
    assert get_power_on_hours(attrs, table) is None
    assert get_num_reallocations(attrs, table) is None
    assert get_num_pending_reallocations(attrs, table) is None
    assert get_num_crc_errors(attrs, table) is None


def test_table_without_type_gives_none():
    custom = SmartTable(attrs=(SmartAttrInfo(id=5, type=SmartAttrType.REALLOC, name="Realloc"),))
    attrs = [SmartAttribute(id=194, status=0, value=110, min=100, raw=0),
             SmartAttribute(id=5, status=0, value=100, min=100, raw=4)]
    assert get_temperature(attrs, custom) is None
    assert get_num_reallocations(attrs, custom) == 4