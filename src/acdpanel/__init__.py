"""Validation-and-storage core for the ACD intensity / spread research panel."""

__version__ = "0.1.0"
