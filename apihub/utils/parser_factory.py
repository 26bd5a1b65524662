"""
Parser factory for creating the appropriate dataset parser based on source type.
"""
import logging
from pathlib import PurePath

from apihub.models.dataset import DatasetSource
from apihub.utils.parsers.base_parser import BaseParser, DatasetParseError
from apihub.utils.parsers.csv_parser import CSVParser
from apihub.utils.parsers.json_parser import JSONParser

logger = logging.getLogger(__name__)


def detect_source(filename: str) -> DatasetSource:
    """
    Detect the upload type from the file name.

    Anything not ending in .csv is treated as JSON.
    """
    if PurePath(filename or "").suffix.lower() == ".csv":
        return DatasetSource.CSV
    return DatasetSource.JSON


def create_parser(source: DatasetSource, content: str) -> BaseParser:
    """
    Create appropriate parser based on source type.

    Args:
        source: DatasetSource enum value
        content: Payload content

    Returns:
        Parser instance
    """
    parsers = {
        DatasetSource.JSON: JSONParser,
        DatasetSource.MANUAL: JSONParser,
        DatasetSource.CSV: CSVParser,
    }

    parser_class = parsers.get(source)
    if not parser_class:
        raise DatasetParseError(f"Unsupported dataset source: {source}")

    return parser_class(content)
