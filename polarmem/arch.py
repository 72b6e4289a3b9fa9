"""Architecture parameters and emulated physical memory.

Two address-space layouts are described here. The first is the x86_64 layout
with 4-level paging. The second is a software "scale model" of x86_64 that is
used for testing:

- 16-bit addresses (48 on x86_64)
- 3 levels of page tables (4 on x86_64)
- 4-bit indexes, so 16 entries per table (9 bits and 512 entries on x86_64)
- 16-byte pages (4 KiB on x86_64)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

WORD_BITS = 64
WORD_MASK = (1 << WORD_BITS) - 1


def _is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


@dataclass(frozen=True)
class Architecture:
    """Address widths and page-table geometry of one architecture."""

    name: str
    max_physical_bits: int
    max_virtual_bits: int
    page_offset_bits: int
    index_bits: int
    page_table_levels: int

    @property
    def page_size(self) -> int:
        """Size of a page in bytes."""
        return 1 << self.page_offset_bits

    @property
    def entries_per_table(self) -> int:
        """Number of entries in one page table."""
        return 1 << self.index_bits

    @property
    def max_physical_address(self) -> int:
        """The highest valid physical address."""
        return (1 << self.max_physical_bits) - 1

    @property
    def _sign_bit(self) -> int:
        return 1 << (self.max_virtual_bits - 1)

    @property
    def _low_mask(self) -> int:
        return (1 << self.max_virtual_bits) - 1

    @property
    def _high_mask(self) -> int:
        return WORD_MASK ^ self._low_mask

    def page_index(self, address: int, level: int) -> int:
        """Return the page-table index of ``address`` at ``level`` (0 is the lowest)."""
        if not 0 <= level < self.page_table_levels:
            raise ValueError(
                f"level out of range for {self.name} "
                f"(0-{self.page_table_levels - 1})"
            )
        shift = self.page_offset_bits + level * self.index_bits
        return (address >> shift) & ((1 << self.index_bits) - 1)

    def validate_physical(self, addr: int) -> bool:
        """Return whether ``addr`` fits in the physical address width."""
        return 0 <= addr <= self.max_physical_address

    def validate_virtual(self, addr: int) -> bool:
        """Return whether ``addr`` is canonical (upper bits sign-extended)."""
        if not 0 <= addr <= WORD_MASK:
            return False
        return self._canonical(addr) == addr

    def canonicalize_virtual(self, addr: int) -> int:
        """Sign-extend the top bit of the virtual address width into the upper bits."""
        if not 0 <= addr <= WORD_MASK:
            raise ValueError(f"address {addr:#x} does not fit in a machine word")
        return self._canonical(addr)

    def _canonical(self, addr: int) -> int:
        if addr & self._sign_bit:
            return addr | self._high_mask
        return addr & self._low_mask


SOFTWARE = Architecture(
    name="software emulation",
    max_physical_bits=16,
    max_virtual_bits=16,
    page_offset_bits=4,
    index_bits=4,
    page_table_levels=3,
)

X86_64 = Architecture(
    name="x86_64",
    max_physical_bits=48,
    max_virtual_bits=48,
    page_offset_bits=12,
    index_bits=9,
    page_table_levels=4,
)

# The layout the rest of the package works with.
ACTIVE = SOFTWARE


class _HostAddressSpace:
    """Hands out non-overlapping host address ranges for emulated memories."""

    _GRANULE = 0x1_0000

    def __init__(self, start: int) -> None:
        self._next = start
        self._lock = threading.Lock()

    def reserve(self, size: int) -> int:
        span = (size + self._GRANULE - 1) // self._GRANULE * self._GRANULE
        with self._lock:
            base = self._next
            self._next += span + self._GRANULE
        return base


_HOST = _HostAddressSpace(0x7F00_0000_0000)


@dataclass(eq=False)
class EmulatedMemory:
    """A simulated physical memory region with a bump allocator.

    Physical addresses are offsets into the region; host addresses
    ("pointers") are the region's base host address plus that offset.
    """

    capacity: int
    memory: bytearray = field(init=False, repr=False)
    base: int = field(init=False)
    _next_alloc: int = field(init=False, default=0, repr=False)
    _lock: threading.Lock = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.capacity < 0:
            raise ValueError("emulated memory size must not be negative")
        self.memory = bytearray(self.capacity)
        self.base = _HOST.reserve(self.capacity)
        self._lock = threading.Lock()

    def allocate(self, size: int, align: int) -> int | None:
        """Reserve ``size`` bytes aligned to ``align``.

        Returns the physical address of the block, or None if there is not
        enough space left.
        """
        if not _is_power_of_two(align):
            raise ValueError("alignment must be a power of two")
        if size < 0:
            raise ValueError("allocation size must not be negative")
        with self._lock:
            aligned = (self._next_alloc + align - 1) & ~(align - 1)
            end = aligned + size
            if end > len(self.memory):
                return None
            self._next_alloc = end
            return aligned

    def translate(self, phys: int) -> int:
        """Return the host address of physical address ``phys``."""
        if not 0 <= phys < len(self.memory):
            raise IndexError("physical address out of bounds")
        return self.base + phys

    def ptr_to_phys(self, ptr: int) -> int:
        """Return the physical address of host address ``ptr``."""
        offset = ptr - self.base
        if not 0 <= offset < len(self.memory):
            raise ValueError("pointer not within emulated memory")
        return offset

    def size(self) -> int:
        """Return the size of the region in bytes."""
        return len(self.memory)