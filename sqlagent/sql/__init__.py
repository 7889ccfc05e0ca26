"""SQL normalization and safety validation."""

from sqlagent.sql.postprocess import SqlPostProcessor, postprocess
from sqlagent.sql.validator import SqlValidator, extract_tables, validate

__all__ = ["SqlPostProcessor", "SqlValidator", "extract_tables", "postprocess", "validate"]
