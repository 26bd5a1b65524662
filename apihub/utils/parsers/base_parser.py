"""
Base parser class for dataset payloads.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional
import logging

logger = logging.getLogger(__name__)


class DatasetParseError(ValueError):
    """Raised when a payload cannot be turned into a list of records."""


class BaseParser(ABC):
    """Base class for dataset payload parsers."""

    def __init__(self, content: str):
        """
        Initialize parser with payload content.

        Args:
            content: The uploaded file content as string
        """
        self.content = content

    @abstractmethod
    def parse_records(self) -> List[Any]:
        """Parse the payload into an ordered list of records."""
        pass

    def parse_all(self) -> Dict[str, Any]:
        """
        Parse the payload and infer its schema.

        Returns:
            Dictionary with 'records' and 'schema'
        """
        records = self.parse_records()
        return {
            "records": records,
            "schema": infer_schema(records),
        }


def json_type_name(value: Any) -> str:
    """Primitive type name of a JSON value as a JavaScript client would report it."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    # objects, arrays and null
    return "object"


def infer_schema(records: List[Any]) -> Optional[Dict[str, str]]:
    """
    Infer a field -> type-name schema from the first record only.

    Later records are never checked against it. Returns None for an empty
    payload or a first record that is not an object.
    """
    if not records or not isinstance(records[0], dict):
        return None
    return {key: json_type_name(value) for key, value in records[0].items()}
