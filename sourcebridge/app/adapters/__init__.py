"""Concrete connector and converter adapters implementing the application ports."""

from __future__ import annotations

from .csv_converter import CsvConverter
from .excel_converter import ExcelConverter
from .ftp import FtpConnector
from .http import HttpConnector
from .json_converter import JsonConverter
from .kafka import KafkaConnector
from .local import LocalFileConnector
from .sftp import SftpConnector
from .xml_converter import XmlConverter

__all__ = [
    "LocalFileConnector",
    "FtpConnector",
    "SftpConnector",
    "KafkaConnector",
    "HttpConnector",
    "CsvConverter",
    "XmlConverter",
    "ExcelConverter",
    "JsonConverter",
]
