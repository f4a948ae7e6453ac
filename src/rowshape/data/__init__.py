"""Row codec and prepared statements."""

from rowshape.data.codec import RowCursor, RowDecoder, RowEncoder
from rowshape.data.statements import PreparedQuery, StatementCache

__all__ = ["PreparedQuery", "RowCursor", "RowDecoder", "RowEncoder", "StatementCache"]
