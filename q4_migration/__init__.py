"""Browser automation for migrating content between Q4 admin sites."""

__version__ = "0.1.0"
