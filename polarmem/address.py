"""Physical and virtual address types.

Both types wrap a machine-word integer and check it against the active
architecture when built. They support alignment helpers, offset arithmetic
and conversion through the direct map of the current address translator.
"""

from __future__ import annotations

from typing import ClassVar

from polarmem.arch import ACTIVE, WORD_MASK
from polarmem.translator import AddressTranslator

__all__ = ["PhysicalAddress", "VirtualAddress"]


def _check_alignment(align: int) -> None:
    if align <= 0 or align & (align - 1):
        raise ValueError("alignment must be a power of two")


def _raw(cls, addr: int):
    instance = object.__new__(cls)
    object.__setattr__(instance, "_value", addr)
    return instance


def _is_aligned(value: int, align: int) -> bool:
    _check_alignment(align)
    return value & (align - 1) == 0


def _align_down(value: int, align: int) -> int:
    _check_alignment(align)
    return value & ~(align - 1)


def _align_up(value: int, align: int) -> int:
    _check_alignment(align)
    return (value + align - 1) & ~(align - 1)


class _Address:
    """Behaviour shared by physical and virtual addresses."""

    __slots__ = ("_value",)

    _invalid_message: ClassVar[str] = "invalid address"

    def __init__(self, addr: int) -> None:
        if isinstance(addr, bool) or not isinstance(addr, int):
            raise TypeError(f"address must be an int, not {type(addr).__name__}")
        if not self._is_valid(addr):
            raise ValueError(self._invalid_message)
        object.__setattr__(self, "_value", addr)

    @staticmethod
    def _is_valid(addr: int) -> bool:
        raise NotImplementedError

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def value(self) -> int:
        """The raw address."""
        return self._value

    def __int__(self) -> int:
        return self._value

    def __index__(self) -> int:
        return self._value

    def __add__(self, offset: int):
        if isinstance(offset, bool) or not isinstance(offset, int):
            return NotImplemented
        return type(self)(self._value + offset)

    def __sub__(self, other):
        if type(other) is type(self):
            diff = self._value - other._value
            if diff < 0:
                raise ValueError("address subtraction underflow")
            return diff
        if isinstance(other, bool) or not isinstance(other, int):
            return NotImplemented
        return type(self)(self._value - other)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._value == other._value

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._value < other._value

    def __le__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._value <= other._value

    def __gt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._value > other._value

    def __ge__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._value >= other._value

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._value))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value:#x})"

    def __str__(self) -> str:
        return f"{self._value:#x}"

    def __format__(self, spec: str) -> str:
        if not spec:
            return str(self)
        return format(self._value, spec)


class PhysicalAddress(_Address):
    """A physical memory address.

    Raises ValueError when the address exceeds the physical address width.
    """

    __slots__ = ()

    _invalid_message = "physical address exceeds maximum width"

    @staticmethod
    def _is_valid(addr: int) -> bool:
        return ACTIVE.validate_physical(addr)

    @classmethod
    def new_unchecked(cls, addr: int) -> PhysicalAddress:
        """Build an address without checking it against the architecture."""
        return _raw(cls, addr)

    def is_aligned(self, align: int) -> bool:
        """Return whether the address is a multiple of ``align`` (a power of two)."""
        return _is_aligned(self._value, align)

    def align_down(self, align: int) -> PhysicalAddress:
        """Round the address down to a multiple of ``align`` (a power of two)."""
        return type(self).new_unchecked(_align_down(self._value, align))

    def align_up(self, align: int) -> PhysicalAddress:
        """Round the address up to a multiple of ``align`` (a power of two)."""
        return type(self).new_unchecked(_align_up(self._value, align))

    @classmethod
    def from_direct_mapped(cls, virt: VirtualAddress) -> PhysicalAddress:
        """Convert a direct-mapped virtual address back to a physical one.

        Raises RuntimeError if no address translator has been set.
        """
        translator = AddressTranslator.current()
        return cls(translator.virt_to_phys(int(virt)))


class VirtualAddress(_Address):
    """A virtual memory address.

    Raises ValueError when the address is not canonical.
    """

    __slots__ = ()

    _invalid_message = "address is not canonical"

    @staticmethod
    def _is_valid(addr: int) -> bool:
        return 0 <= addr <= WORD_MASK and ACTIVE.validate_virtual(addr)

    @classmethod
    def new_unchecked(cls, addr: int) -> VirtualAddress:
        """Build an address without checking it against the architecture."""
        return _raw(cls, addr)

    def is_aligned(self, align: int) -> bool:
        """Return whether the address is a multiple of ``align`` (a power of two)."""
        return _is_aligned(self._value, align)

    def align_down(self, align: int) -> VirtualAddress:
        """Round the address down to a multiple of ``align`` (a power of two)."""
        return type(self).new_unchecked(_align_down(self._value, align))

    def align_up(self, align: int) -> VirtualAddress:
        """Round the address up to a multiple of ``align`` (a power of two)."""
        return type(self).new_unchecked(_align_up(self._value, align))

    @classmethod
    def direct_mapped(cls, phys: PhysicalAddress) -> VirtualAddress:
        """Return the direct-map virtual address of ``phys``.

        Raises RuntimeError if no address translator has been set.
        """
        translator = AddressTranslator.current()
        virt = translator.phys_to_virt(int(phys))
        # Host addresses of emulated memory are not canonical for the guest.
        if translator.is_emulated:
            return cls.new_unchecked(virt)
        return cls(virt)

    def is_direct_mapped(self) -> bool:
        """Return whether the address lies in the direct-mapped region.

        False when no translator is set; always True for emulated memory.
        """
        translator = AddressTranslator.try_current()
        if translator is None:
            return False
        if translator.is_emulated:
            return True
        return self._value >= translator.direct_map_offset

    def page_offset(self) -> int:
        """Return the offset of the address within its page."""
        return self._value & (ACTIVE.page_size - 1)

    def page_index(self, level: int) -> int:
        """Return the page-table index at ``level`` (0 is the lowest)."""
        return ACTIVE.page_index(self._value, level)