"""
Column codec for MySQL to BigQuery replication

Turns raw binlog values into values BigQuery accepts. The same logical value
can arrive in different shapes: an initial dump hands over ENUM labels as
strings while the binlog hands over their 1-based index, SET values arrive
as bitmasks or as the labels themselves, and BIT values arrive as a single
byte, as a string of binary digits or as an integer.
"""

import re
from datetime import datetime
from typing import Any, Optional

import structlog

from ..exceptions import UnsupportedTypeError, ValueDecodingError
from ..models.events import ColumnDescriptor, ColumnType

# binlog rows carry BIT(n) as text such as "00000101"
BIT_STRING = re.compile(r"[01]+")
MYSQL_DATETIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f")


class ColumnCodec:
    """Decodes raw column values into canonical warehouse values"""

    def __init__(self):
        self.logger = structlog.get_logger()
        self._decoders = {
            ColumnType.ENUM: self._decode_enum,
            ColumnType.SET: self._decode_set,
            ColumnType.BIT: self._decode_bit,
            ColumnType.STRING: self._decode_string,
            ColumnType.JSON: self._decode_json,
            ColumnType.DATETIME: self._decode_datetime,
            ColumnType.TIMESTAMP: self._decode_datetime,
        }

    def decode(self, column: ColumnDescriptor, value: Any) -> Any:
        """
        Decode a raw column value

        Args:
            column: Descriptor of the column the value belongs to
            value: Raw value as delivered by the replication stream

        Returns:
            Canonical value (int, str or an untouched passthrough value)

        Raises:
            UnsupportedTypeError: For JSON columns
            ValueDecodingError: For ENUM indexes outside the value list
        """
        decoder = self._decoders.get(column.type)
        if decoder is None:
            return value
        if value is None and column.type is not ColumnType.JSON:
            return None
        return decoder(column, value)

    def _decode_enum(self, column: ColumnDescriptor, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            index = value - 1
            if index < 0 or index >= len(column.enum_values):
                raise ValueDecodingError(
                    f"Invalid enum index {value} for column '{column.name}' "
                    f"with {len(column.enum_values)} values"
                )
            return column.enum_values[index]
        return value

    def _decode_set(self, column: ColumnDescriptor, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            labels = [label for bit, label in enumerate(column.set_values) if value & (1 << bit)]
            return ",".join(labels)
        if isinstance(value, (set, frozenset)):
            return ",".join(label for label in column.set_values if label in value)
        return value

    def _decode_bit(self, column: ColumnDescriptor, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            return 1 if value == b"\x01" else 0
        if isinstance(value, str):
            if BIT_STRING.fullmatch(value):
                return int(value, 2)
            return 1 if value == "\x01" else 0
        return value

    def _decode_string(self, column: ColumnDescriptor, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        return value

    def _decode_json(self, column: ColumnDescriptor, value: Any) -> Any:
        raise UnsupportedTypeError(f"JSON column '{column.name}' is not supported")

    def _decode_datetime(self, column: ColumnDescriptor, value: Any) -> Any:
        if isinstance(value, datetime):
            return self._to_local_iso(value)
        if not isinstance(value, str):
            return value

        parsed = self._parse_datetime(value)
        if parsed is None:
            self.logger.warning("Unparseable datetime value replaced with NULL",
                                column=column.name,
                                value=value)
            return None
        return self._to_local_iso(parsed)

    @staticmethod
    def _parse_datetime(value: str) -> Optional[datetime]:
        for fmt in MYSQL_DATETIME_FORMATS:
            try:
                return datetime.strptime(value, fmt)
            except ValueError:
                continue
        return None

    @staticmethod
    def _to_local_iso(value: datetime) -> str:
        # naive values are local time of the source
        local = value.astimezone()
        timespec = "microseconds" if local.microsecond else "seconds"
        return local.isoformat(timespec=timespec)


def normalize_query_value(value: Any) -> Any:
    """Normalize a side query result value: byte strings become text"""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value
