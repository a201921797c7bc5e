from .transformer import build_column_index, normalize_ignore_columns, transform_row, transform_rows
from .type_mapper import coerce_value, map_column, map_column_type, normalize_text
from .writer import encode_batch, write_batch

__all__ = [
	"map_column_type",
	"map_column",
	"coerce_value",
	"normalize_text",
	"build_column_index",
	"normalize_ignore_columns",
	"transform_row",
	"transform_rows",
	"encode_batch",
	"write_batch",
]
