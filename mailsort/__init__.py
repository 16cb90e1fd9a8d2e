"""Mailsort - classify scanned postal mail and route each letter."""

__version__ = "0.1.0"
