"""Translation between physical and virtual addresses.

A translator works in one of two modes:

- hardware: physical memory is mapped at a fixed offset in the virtual
  address space (the kernel's direct map);
- emulated: physical memory is a simulated region and virtual addresses
  are host addresses inside that region.

The current translator is kept per thread, so that every thread can work
with its own emulated memory.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from polarmem.arch import WORD_MASK, EmulatedMemory

__all__ = ["AddressTranslator"]


_state = threading.local()


@dataclass(frozen=True, eq=False)
class AddressTranslator:
    """Converts between physical and virtual addresses.

    Build instances with :meth:`hardware` or :meth:`emulated`.
    """

    direct_map_offset: int | None = None
    memory: EmulatedMemory | None = None

    def __post_init__(self) -> None:
        if (self.direct_map_offset is None) == (self.memory is None):
            raise ValueError(
                "a translator needs exactly one of a direct-map offset or emulated memory"
            )
        if self.direct_map_offset is not None and not (
            0 <= self.direct_map_offset <= WORD_MASK
        ):
            raise ValueError("direct-map offset does not fit in a machine word")

    @classmethod
    def hardware(cls, direct_map_offset: int) -> AddressTranslator:
        """Create a translator that uses a direct-map offset."""
        return cls(direct_map_offset=direct_map_offset)

    @classmethod
    def emulated(cls, size: int) -> AddressTranslator:
        """Create a translator backed by emulated memory of ``size`` bytes."""
        return cls(memory=EmulatedMemory(size))

    @property
    def is_emulated(self) -> bool:
        """Whether this translator works on emulated memory."""
        return self.memory is not None

    @staticmethod
    def set_current(translator: AddressTranslator) -> None:
        """Install ``translator`` as the current one for this thread.

        Raises RuntimeError if a translator has already been set.
        """
        if getattr(_state, "translator", None) is not None:
            raise RuntimeError("address translator already set")
        _state.translator = translator

    @staticmethod
    def current() -> AddressTranslator:
        """Return the current translator.

        Raises RuntimeError if none has been set.
        """
        translator = getattr(_state, "translator", None)
        if translator is None:
            raise RuntimeError(
                "address translator not set; call AddressTranslator.set_current "
                "during initialization"
            )
        return translator

    @staticmethod
    def try_current() -> AddressTranslator | None:
        """Return the current translator, or None if none has been set."""
        return getattr(_state, "translator", None)

    @staticmethod
    def reset_current() -> None:
        """Forget this thread's current translator."""
        _state.translator = None

    def phys_to_virt(self, phys: int) -> int:
        """Translate a physical address to a virtual address."""
        if self.memory is not None:
            return self.memory.translate(phys)
        return (phys + self.direct_map_offset) & WORD_MASK

    def virt_to_phys(self, virt: int) -> int:
        """Translate a virtual address to a physical address."""
        if self.memory is not None:
            return self.memory.ptr_to_phys(virt)
        return (virt - self.direct_map_offset) & WORD_MASK

    def allocate(self, size: int, align: int) -> int | None:
        """Allocate from emulated memory.

        Returns the physical address of the block, or None if there is not
        enough space. Raises RuntimeError on a hardware translator.
        """
        if self.memory is None:
            raise RuntimeError("cannot allocate from hardware translator")
        return self.memory.allocate(size, align)