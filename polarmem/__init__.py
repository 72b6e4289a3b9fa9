"""Architecture layouts, address types, address translation and software-emulated page tables."""

__version__ = "0.1.0"
__all__ = ["arch", "translator", "address", "paging"]