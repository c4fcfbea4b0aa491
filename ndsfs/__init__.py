"""Browse the file system of Nintendo DS ROM images and replace files inside them."""

__version__ = "0.1.0"
__all__ = ["crc", "partition", "header", "rom", "cli"]