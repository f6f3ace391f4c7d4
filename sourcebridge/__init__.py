"""SourceBridge - connectors and converters that turn external data into canonical JSON.

Reads files and records from local directories, FTP, SFTP, Kafka and HTTP APIs
and normalizes CSV, XML, Excel and JSON payloads for downstream validation.
"""

__version__ = "0.1.0"
__author__ = "SourceBridge Contributors"

from sourcebridge.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
