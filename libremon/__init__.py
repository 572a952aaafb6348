"""Decoder and glucose trend toolkit for Libre sensor memory read through a BLE relay."""

__version__ = "0.1.0"
