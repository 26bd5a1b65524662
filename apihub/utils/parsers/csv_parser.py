"""
CSV dataset parser.

Deliberately naive: lines are split on commas with no quoting rules, so a
quoted field containing a comma is split in two.
"""
import logging
import math
import re
from typing import Any, Dict, List, Union

from apihub.utils.parsers.base_parser import BaseParser, DatasetParseError

logger = logging.getLogger(__name__)

NUMBER_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def _clean_cell(cell: str) -> str:
    return cell.strip().replace('"', "")


def coerce_value(value: str) -> Union[str, int, float]:
    """Turn numeric-looking cells into numbers; everything else stays a string."""
    if value == "" or not NUMBER_PATTERN.match(value):
        return value
    number = float(value)
    if not math.isfinite(number):
        # 1e400 overflows to inf, which JSON cannot carry
        return value
    if number.is_integer() and "." not in value and "e" not in value.lower():
        return int(value)
    return number


class CSVParser(BaseParser):
    """Parser for .csv uploads: header line plus one record per line."""

    def parse_records(self) -> List[Dict[str, Any]]:
        lines = [line for line in self.content.strip().split("\n") if line.strip()]
        if len(lines) < 2:
            raise DatasetParseError("CSV file must have headers and at least one row")

        headers = [_clean_cell(h) for h in lines[0].split(",")]

        records = []
        for line in lines[1:]:
            values = [_clean_cell(v) for v in line.split(",")]
            row = {}
            for index, header in enumerate(headers):
                raw = values[index] if index < len(values) else ""
                row[header] = coerce_value(raw)
            records.append(row)

        logger.debug(f"Parsed CSV payload: {len(headers)} columns, {len(records)} rows")
        return records
