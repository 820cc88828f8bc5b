"""Command line interface to Philips Hue bridges."""

__version__ = "0.1.0"
