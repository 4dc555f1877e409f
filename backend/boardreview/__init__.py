"""Board review and voting workflow for client funding applications."""

__version__ = "0.1.0"
