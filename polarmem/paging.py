"""Page-table primitives for the software-emulated architecture.

The layout is a scale model of x86_64. An entry is a 64-bit word:

- bits 0-3: flags
- bits 4-19: physical address (16 bits, sign-extended from bit 15)
- bits 20-63: reserved

A table holds 16 entries, one for each 4-bit index.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator

from polarmem.address import PhysicalAddress
from polarmem.arch import ACTIVE

__all__ = ["PageFlags", "PageEntry", "PageTable", "AddressSpace"]


class PageFlags(enum.IntFlag):
    """Permission and state bits of a page-table entry."""

    PRESENT = 1 << 0
    WRITABLE = 1 << 1
    USER = 1 << 2
    NO_EXECUTE = 1 << 3


_ADDRESS_MASK = 0xFFFF0
_FLAGS_MASK = 0xF
# Bit 7 of the word, which lies inside the address field.
_HUGE_PAGE_BIT = 1 << 7


def _canonicalize(addr: int) -> int:
    """Sign-extend bit 15 of a 16-bit address into bits 16-63."""
    addr_16 = addr & 0xFFFF
    if addr_16 & 0x8000:
        return addr_16 | 0xFFFF_FFFF_FFFF_0000
    return addr_16


@dataclass(frozen=True)
class PageEntry:
    """A single page-table entry, held as its raw machine word."""

    raw: int = 0

    @classmethod
    def new(cls, address: PhysicalAddress, flags: PageFlags) -> PageEntry:
        """Build an entry mapping the page-aligned ``address`` with ``flags``.

        Raises ValueError if the address is not page-aligned.
        """
        value = int(address)
        if value & (ACTIVE.page_size - 1):
            raise ValueError(
                "physical address must be page-aligned (16-byte alignment)"
            )
        addr_bits = _canonicalize(value) & _ADDRESS_MASK
        return cls(addr_bits | (int(flags) & _FLAGS_MASK))

    def address(self) -> PhysicalAddress | None:
        """Return the mapped physical address, or None if not present."""
        if not self.is_present():
            return None
        return PhysicalAddress((self.raw & _ADDRESS_MASK) & 0xFFFF)

    def flags(self) -> PageFlags:
        """Return the flag bits of this entry."""
        return PageFlags(self.raw & _FLAGS_MASK)

    def with_flags(self, flags: PageFlags) -> PageEntry:
        """Return a copy of this entry with ``flags`` and the same address."""
        return PageEntry((self.raw & _ADDRESS_MASK) | (int(flags) & _FLAGS_MASK))

    def is_present(self) -> bool:
        """Return whether the entry is valid."""
        return bool(self.flags() & PageFlags.PRESENT)

    def is_leaf(self) -> bool:
        """Return whether the entry maps a page directly (huge-page bit set)."""
        return self.is_present() and bool(self.raw & _HUGE_PAGE_BIT)


class PageTable:
    """One level of the page-table hierarchy; all entries start empty."""

    def __init__(self) -> None:
        self._entries = [PageEntry() for _ in range(ACTIVE.entries_per_table)]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._entries):
            raise IndexError("page table index out of bounds")

    def entry(self, index: int) -> PageEntry:
        """Return the entry at ``index``; raises IndexError when out of range."""
        self._check_index(index)
        return self._entries[index]

    def set_entry(self, index: int, entry: PageEntry) -> None:
        """Store ``entry`` at ``index``; raises IndexError when out of range."""
        if not isinstance(entry, PageEntry):
            raise TypeError(f"expected a PageEntry, not {type(entry).__name__}")
        self._check_index(index)
        self._entries[index] = entry

    def clear_entry(self, index: int) -> None:
        """Reset the entry at ``index`` to not present."""
        self._check_index(index)
        self._entries[index] = PageEntry()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PageEntry]:
        return iter(self._entries)


@dataclass
class AddressSpace:
    """A virtual address space, owning the page table that maps it."""

    page_table: PageTable = field(default_factory=PageTable)