"""easkctl — an interactive controller for the Eask command-line tool."""

__version__ = "0.1.0"
