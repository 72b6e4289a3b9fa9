# polarmem

Building blocks for a kernel memory manager. The package has physical and
virtual address types, translation between the two, and a small software
model of x86_64 paging that runs on any host.

## Modules

### `polarmem.arch`

- `Architecture` is a frozen dataclass that describes an address-space
  layout. It has these properties:
  - `page_size`
  - `entries_per_table`
  - `max_physical_address`

  It has these methods:
  - `page_index(address, level)`, which raises `ValueError` for a level out
    of range
  - `validate_physical(addr)`
  - `validate_virtual(addr)`, which checks that the address is canonical
  - `canonicalize_virtual(addr)`, which sign-extends the top bit of the
    virtual width into the upper bits of a 64-bit word
- Two layouts are defined:
  - `SOFTWARE` is a scale model of x86_64 with 16-bit addresses, 16-byte
    pages, 3 page-table levels and 16 entries per table;
  - `X86_64` has 48-bit addresses, 4 KiB pages, 4 levels and 512 entries per
    table.

  `ACTIVE` is the layout the rest of the package uses, and it is `SOFTWARE`.
- `EmulatedMemory(capacity)` is a zero-filled simulated physical memory with
  a thread-safe bump allocator. Each instance gets its own range of host
  addresses, and these ranges never overlap. Its methods are:
  - `allocate(size, align)` returns a physical address, or `None` when the
    space has run out. It raises `ValueError` when the alignment is not a
    power of two.
  - `translate(phys)` turns a physical address into a host address.
  - `ptr_to_phys(ptr)` turns a host address back into a physical one.
  - `size()` returns the size of the region.

### `polarmem.translator`

`AddressTranslator` converts physical addresses to virtual ones and back,
through `phys_to_virt` and `virt_to_phys`. It works in one of two modes:

- `AddressTranslator.hardware(offset)` adds a fixed direct-map offset,
  wrapping at 64 bits.
- `AddressTranslator.emulated(size)` works over an `EmulatedMemory`. In this
  mode `allocate(size, align)` hands out blocks of it. Calling `allocate` on
  a hardware translator raises `RuntimeError`.

Each thread has its own current translator. The static methods that manage
it are:

- `set_current(translator)` installs it. It raises `RuntimeError` if one is
  already set.
- `current()` returns it. It raises `RuntimeError` if none is set.
- `try_current()` returns it, or `None` if none is set.
- `reset_current()` clears it.

### `polarmem.address`

`PhysicalAddress` and `VirtualAddress` are immutable and hashable wrappers
around an integer. They are checked against the active layout when they are
built. A physical address that is too wide, or a virtual address that is not
canonical, raises `ValueError`.

- Adding or subtracting an integer gives a new, checked address. Subtracting
  one address from another of the same kind gives the distance between them,
  and raises `ValueError` if the result would be negative.
- Addresses of the same kind can be compared. `int()`, `repr()` (for example
  `PhysicalAddress(0x100)`) and `str()` (for example `0x100`) all work, and
  so does a format spec.
- `is_aligned`, `align_down` and `align_up` take a power of two. Any other
  value raises `ValueError`. `new_unchecked` builds an address without
  checking it.
- `VirtualAddress` also has `page_offset()` and `page_index(level)`.
- `VirtualAddress.direct_mapped(phys)` and
  `PhysicalAddress.from_direct_mapped(virt)` convert through the current
  translator. `is_direct_mapped()` returns `False` when no translator is set
  and `True` for emulated memory. With a hardware translator it returns
  `True` when the address is at or above the offset.

### `polarmem.paging`

These types cover the software-emulated page-table format:

- `PageFlags` is an `IntFlag` with the members `PRESENT`, `WRITABLE`, `USER`
  and `NO_EXECUTE`.
- `PageEntry` is a frozen entry that holds its raw word in `raw`. Its
  methods are:
  - `PageEntry.new(address, flags)` raises `ValueError` when the address is
    not aligned to 16 bytes.
  - `address()` returns `None` unless the entry is present.
  - `flags()` returns the entry's flags.
  - `with_flags(flags)` returns a copy with new flags.
  - `is_present()` tells whether the entry is present.
  - `is_leaf()` tells whether the huge-page bit is set on a present entry.
- `PageTable` holds 16 entries, all empty at the start. It has
  `entry(index)`, `set_entry(index, entry)` and `clear_entry(index)`, and it
  supports `len()` and iteration. An index out of range raises `IndexError`.
- `AddressSpace` is a dataclass that owns a `page_table`.

## Example

```python
from polarmem.translator import AddressTranslator
from polarmem.address import PhysicalAddress, VirtualAddress
from polarmem.paging import PageEntry, PageFlags, PageTable

AddressTranslator.set_current(AddressTranslator.hardware(0xFFFF_FFFF_FFFF_8000))

phys = PhysicalAddress(0x0100)
virt = VirtualAddress.direct_mapped(phys)
assert virt == VirtualAddress(0xFFFF_FFFF_FFFF_8100)
assert PhysicalAddress.from_direct_mapped(virt) == phys

addr = VirtualAddress(0x1234)
assert addr.page_offset() == 0x4
assert [addr.page_index(level) for level in range(3)] == [0x3, 0x2, 0x1]

table = PageTable()
table.set_entry(3, PageEntry.new(PhysicalAddress(0x0120), PageFlags.PRESENT | PageFlags.WRITABLE))
assert table.entry(3).address() == PhysicalAddress(0x0120)

AddressTranslator.reset_current()
```

## What it does not do

- There is no frame allocator.
- Nothing walks page tables or maps and unmaps pages. `PageTable` only
  stores entries.
- Page tables exist only in the software-emulated format. The `X86_64`
  layout describes address widths and geometry, but nothing loads a table
  into hardware.

## Running the tests

```
pip install -e .[test]
pytest
```