"""Pick a stored project location and open a multiplexer session rooted there."""

__version__ = "0.3.0"
