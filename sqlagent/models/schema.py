"""
Schema Models

Descriptions of a target database: tables, columns, foreign keys, and the
per-question schema context selected from them.
"""

from pydantic import BaseModel, ConfigDict, Field


class ColumnDoc(BaseModel):
    """Column documentation."""

    name: str = Field(..., min_length=1)
    data_type: str = Field(default="", description="Native column type")
    aliases: list[str] = Field(default_factory=list)
    description: str = Field(default="")
    nullable: bool = True
    is_primary_key: bool = False

    model_config = ConfigDict(frozen=True)


class ForeignKeyDoc(BaseModel):
    """Foreign key from ``column`` to ``ref_table.ref_column``."""

    column: str
    ref_table: str
    ref_column: str

    model_config = ConfigDict(frozen=True)


class TableDoc(BaseModel):
    """Table documentation."""

    name: str = Field(..., min_length=1)
    aliases: list[str] = Field(default_factory=list)
    description: str = Field(default="")
    columns: list[ColumnDoc] = Field(default_factory=list)
    foreign_keys: list[ForeignKeyDoc] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def to_summary(self) -> dict:
        """Compact dict used in tool results and prompts."""
        return {
            "name": self.name,
            "description": self.description,
            "columns": [
                {
                    "name": column.name,
                    "type": column.data_type,
                    "description": column.description,
                }
                for column in self.columns
            ],
            "foreign_keys": [
                f"{fk.column} -> {fk.ref_table}.{fk.ref_column}" for fk in self.foreign_keys
            ],
        }


class DatabaseSchema(BaseModel):
    """Ordered table documentation for one database."""

    name: str = Field(default="")
    dialect: str = Field(default="", description="Dialect reported by the schema source")
    tables: list[TableDoc] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def get_table(self, name: str) -> TableDoc | None:
        lowered = name.lower()
        for table in self.tables:
            if table.name.lower() == lowered:
                return table
        return None


class SchemaContext(BaseModel):
    """Subset of the schema selected for one question, in ranked order."""

    tables: list[TableDoc] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def table_names(self) -> list[str]:
        return [table.name for table in self.tables]

    def contains(self, table_name: str) -> bool:
        lowered = table_name.lower()
        return any(table.name.lower() == lowered for table in self.tables)
