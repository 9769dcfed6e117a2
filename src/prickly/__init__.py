"""prickly: a viewer and editor for binary param files."""

__version__ = "0.1.0"
