import pytest

from polarmem.address import PhysicalAddress
from polarmem.arch import ACTIVE
from polarmem.paging import AddressSpace, PageEntry, PageFlags, PageTable


@pytest.mark.parametrize("addr", [0x0, 0x10, 0x1230, 0x7FF0, 0x8000, 0xFFF0])
def test_entry_round_trips_address(addr):
    entry = PageEntry.new(PhysicalAddress(addr), PageFlags.PRESENT)
    assert entry.address() == PhysicalAddress(addr)


@pytest.mark.parametrize(
    "flags",
    [
        PageFlags.PRESENT,
        PageFlags.PRESENT | PageFlags.WRITABLE,
        PageFlags.PRESENT | PageFlags.USER | PageFlags.NO_EXECUTE,
        PageFlags.USER,
        PageFlags(0),
    ],
)
def test_entry_round_trips_flags(flags):
    entry = PageEntry.new(PhysicalAddress(0x1230), flags)
    assert entry.flags() == flags


def test_unaligned_address_rejected():
    with pytest.raises(ValueError):
        PageEntry.new(PhysicalAddress(0x1234), PageFlags.PRESENT)


def test_not_present_entry_has_no_address():
    entry = PageEntry.new(PhysicalAddress(0x1230), PageFlags.WRITABLE)
    assert entry.address() is None
    assert entry.is_present() is False


def test_default_entry_is_empty():
    entry = PageEntry()
    assert entry.raw == 0
    assert entry.is_present() is False
    assert entry.is_leaf() is False


def test_high_address_is_sign_extended_in_raw_word():
    entry = PageEntry.new(PhysicalAddress(0x8000), PageFlags.PRESENT)
    assert entry.raw & 0xF0000 == 0xF0000
    assert entry.address() == PhysicalAddress(0x8000)


def test_low_address_is_not_sign_extended():
    entry = PageEntry.new(PhysicalAddress(0x7FF0), PageFlags.PRESENT)
    assert entry.raw >> 16 == 0


def test_with_flags_preserves_address_and_original():
    original = PageEntry.new(PhysicalAddress(0x4560), PageFlags.PRESENT)
    changed = original.with_flags(PageFlags.PRESENT | PageFlags.WRITABLE)
    assert changed.address() == original.address()
    assert changed.flags() == PageFlags.PRESENT | PageFlags.WRITABLE
    assert original.flags() == PageFlags.PRESENT


def test_with_flags_clearing_present_hides_address():
    entry = PageEntry.new(PhysicalAddress(0x4560), PageFlags.PRESENT)
    hidden = entry.with_flags(PageFlags.WRITABLE)
    assert hidden.address() is None
    assert hidden.with_flags(PageFlags.PRESENT).address() == PhysicalAddress(0x4560)


def test_leaf_depends_on_huge_page_bit_and_presence():
    assert PageEntry.new(PhysicalAddress(0x80), PageFlags.PRESENT).is_leaf() is True
    assert PageEntry.new(PhysicalAddress(0x100), PageFlags.PRESENT).is_leaf() is False
    assert PageEntry.new(PhysicalAddress(0x80), PageFlags(0)).is_leaf() is False


def test_entry_from_raw_word():
    entry = PageEntry.new(PhysicalAddress(0x1230), PageFlags.PRESENT)
    copy = PageEntry(entry.raw)
    assert copy == entry
    assert copy.address() == PhysicalAddress(0x1230)


def test_new_table_is_empty():
    table = PageTable()
    assert len(table) == ACTIVE.entries_per_table
    assert all(not entry.is_present() for entry in table)


def test_table_set_and_get_entry():
    table = PageTable()
    entry = PageEntry.new(PhysicalAddress(0x2000), PageFlags.PRESENT)
    table.set_entry(3, entry)
    assert table.entry(3) == entry
    assert table.entry(2) == PageEntry()


def test_table_clear_entry():
    table = PageTable()
    table.set_entry(5, PageEntry.new(PhysicalAddress(0x2000), PageFlags.PRESENT))
    table.clear_entry(5)
    assert table.entry(5).is_present() is False
    assert table.entry(5).raw == 0


@pytest.mark.parametrize("index", [-1, ACTIVE.entries_per_table, 100])
def test_table_index_out_of_bounds(index):
    table = PageTable()
    with pytest.raises(IndexError):
        table.entry(index)
    with pytest.raises(IndexError):
        table.set_entry(index, PageEntry())
    with pytest.raises(IndexError):
        table.clear_entry(index)


def test_table_last_index_is_valid():
    table = PageTable()
    entry = PageEntry.new(PhysicalAddress(0x10), PageFlags.PRESENT)
    table.set_entry(ACTIVE.entries_per_table - 1, entry)
    assert list(table)[-1] == entry


def test_table_rejects_non_entry():
    table = PageTable()
    with pytest.raises(TypeError):
        table.set_entry(0, 0x1231)


def test_address_spaces_have_independent_tables():
    first = AddressSpace()
    second = AddressSpace()
    entry = PageEntry.new(PhysicalAddress(0x3000), PageFlags.PRESENT)
    first.page_table.set_entry(0, entry)
    assert first.page_table.entry(0) == entry
    assert second.page_table.entry(0).is_present() is False