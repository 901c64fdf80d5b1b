"""Discovery of hardware and system features of a Linux node as label-ready mappings."""

__version__ = "0.1.0"