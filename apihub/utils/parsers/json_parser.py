"""
JSON dataset parser.
"""
import json
import logging
from typing import Any, List

from apihub.utils.parsers.base_parser import BaseParser, DatasetParseError

logger = logging.getLogger(__name__)


def coerce_records(payload: Any) -> List[Any]:
    """Wrap a single JSON value into a one-element list; lists pass through."""
    if isinstance(payload, list):
        return payload
    return [payload]


class JSONParser(BaseParser):
    """Parser for .json uploads and JSON-string bodies."""

    def parse_records(self) -> List[Any]:
        try:
            payload = json.loads(self.content)
        except json.JSONDecodeError as e:
            logger.debug(f"Rejected JSON payload: {e}")
            raise DatasetParseError("Invalid JSON data") from e
        return coerce_records(payload)
