"""Resource API: a CRUD resource service with password login and bearer tokens."""

__version__ = "0.1.0"
