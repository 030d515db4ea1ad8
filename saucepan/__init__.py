"""Assemble a ROM, an emulator core and artwork into an add-on UCE container."""

__version__ = "0.1.0"
