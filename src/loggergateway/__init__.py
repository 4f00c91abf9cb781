"""loggergateway - Sync data files from a logging device to a data store server."""

__version__ = "0.1.0"
