"""Exchange / Active Directory administration scripts."""

__version__ = "1.0.0"
