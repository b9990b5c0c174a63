"""
Zynex: a multi-VM manager for QEMU guests built from distribution cloud images.
"""

__version__ = "1.0.0"
