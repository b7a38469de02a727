"""
Catalog Schema Reader

Reads the DataSet-style XML Schema (XSD) that describes the persisted
catalog: the dataset root element, its tables, each table's columns, and
primary-key constraints.  Data rows are checked against it on load and laid
out by it on save.

Usage:
    schema = load_schema("music.xsd")
    values = schema.parse_row("song", row_element)
    element = schema.build_row("song", {"id": "1", "title": "Intro"})
"""

from __future__ import annotations

import os
import xml.etree.ElementTree as ET
from typing import IO, Dict, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, Field

from .errors import LoadError
from .models import PLAYLIST_SONG_TABLE, SONG_FIELDS, SONG_TABLE

Source = Union[str, os.PathLike, IO]

XS_NS = "http://www.w3.org/2001/XMLSchema"
MSDATA_NS = "urn:schemas-microsoft-com:xml-msdata"

_XS = f"{{{XS_NS}}}"
_MSDATA = f"{{{MSDATA_NS}}}"

INTEGER_TYPES = frozenset({
    "int", "integer", "long", "short", "byte",
    "unsignedInt", "unsignedLong", "unsignedShort", "unsignedByte",
    "nonNegativeInteger", "positiveInteger",
})

# Columns the catalog store needs from each table it owns
REQUIRED_COLUMNS: Dict[str, Dict[str, bool]] = {
    SONG_TABLE: {"id": True, **{name: False for name in SONG_FIELDS}},
    PLAYLIST_SONG_TABLE: {"playlist_id": True, "song_id": True},
}


# ---------------------------------------------------------------------------
# Schema models
# ---------------------------------------------------------------------------

class ColumnSchema(BaseModel):
    """One column (child element) of a table row."""

    name: str
    xsd_type: str = Field("string", description="XSD type name without prefix")
    required: bool = Field(True, description="False when minOccurs=0")
    auto_increment: bool = False
    auto_increment_seed: int = 1
    auto_increment_step: int = 1

    @property
    def is_integer(self) -> bool:
        return self.xsd_type in INTEGER_TYPES


class TableSchema(BaseModel):
    """A table: a repeated row element under the dataset root."""

    name: str
    columns: List[ColumnSchema] = Field(default_factory=list)
    primary_key: Optional[str] = None

    def column(self, name: str) -> Optional[ColumnSchema]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]


class CatalogSchema(BaseModel):
    """Parsed dataset schema."""

    root: str = Field(..., description="Name of the dataset root element")
    tables: Dict[str, TableSchema] = Field(default_factory=dict)

    def table(self, name: str) -> TableSchema:
        try:
            return self.tables[name]
        except KeyError:
            raise LoadError(f"Table '{name}' is not declared by the schema") from None

    def parse_row(self, table_name: str, element: ET.Element) -> Dict[str, Optional[str]]:
        """
        Check a data row against its table and return its column values.

        Columns absent from the row map to None; present but empty columns
        map to "".  Raises LoadError for undeclared columns, missing required
        columns, and non-integer values in integer columns.
        """
        table = self.table(table_name)
        values: Dict[str, Optional[str]] = {name: None for name in table.column_names}

        for child in element:
            col = table.column(child.tag)
            if col is None:
                raise LoadError(f"Unknown column '{child.tag}' in table '{table_name}'")
            text = child.text or ""
            if col.is_integer:
                try:
                    int(text.strip())
                except ValueError:
                    raise LoadError(
                        f"Column '{table_name}.{col.name}' expects an integer, got {text!r}"
                    ) from None
                text = text.strip()
            values[col.name] = text

        for col in table.columns:
            if col.required and values[col.name] is None:
                raise LoadError(f"Row in table '{table_name}' is missing column '{col.name}'")

        return values

    def build_row(self, table_name: str, values: Dict[str, Optional[str]]) -> ET.Element:
        """Lay out a row element in schema column order, omitting None values."""
        table = self.table(table_name)
        row = ET.Element(table_name)
        for name in table.column_names:
            value = values.get(name)
            if value is None:
                continue
            ET.SubElement(row, name).text = value
        return row


# ---------------------------------------------------------------------------
# XSD parsing
# ---------------------------------------------------------------------------

def parse_xml(source: Source, what: str) -> ET.ElementTree:
    """Parse an XML path or stream, mapping every failure to LoadError."""
    try:
        if hasattr(source, "seekable") and source.seekable():
            source.seek(0)
        return ET.parse(source)
    except (OSError, ET.ParseError) as e:
        raise LoadError(f"Failed to read {what}: {e}") from e


def _strip_prefix(name: str) -> str:
    return name.split(":")[-1]


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def _int_attr(element: ET.Element, attr: str, default: int) -> int:
    raw = element.get(attr)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise LoadError(f"Attribute {attr} must be an integer, got {raw!r}") from None


def _find_dataset(schema_root: ET.Element) -> ET.Element:
    top = schema_root.findall(f"{_XS}element")
    for el in top:
        if _is_true(el.get(f"{_MSDATA}IsDataSet")):
            return el
    if len(top) == 1:
        return top[0]
    raise LoadError("Schema does not declare a single dataset root element")


def _row_particles(complex_type: Optional[ET.Element]) -> List[ET.Element]:
    """Child <xs:element> declarations of a complexType's choice/sequence/all."""
    if complex_type is None:
        return []
    for group in ("choice", "sequence", "all"):
        container = complex_type.find(f"{_XS}{group}")
        if container is not None:
            return container.findall(f"{_XS}element")
    return []


def _parse_column(el: ET.Element) -> ColumnSchema:
    name = el.get("name")
    if not name:
        raise LoadError("Column element without a name")
    return ColumnSchema(
        name=name,
        xsd_type=_strip_prefix(el.get("type", "xs:string")),
        required=el.get("minOccurs", "1") != "0",
        auto_increment=_is_true(el.get(f"{_MSDATA}AutoIncrement")),
        auto_increment_seed=_int_attr(el, f"{_MSDATA}AutoIncrementSeed", 1),
        auto_increment_step=_int_attr(el, f"{_MSDATA}AutoIncrementStep", 1),
    )


def _apply_primary_keys(dataset: ET.Element, tables: Dict[str, TableSchema]) -> None:
    constraints = dataset.findall(f"{_XS}unique") + dataset.findall(f"{_XS}key")
    for constraint in constraints:
        if constraint.tag == f"{_XS}unique" and not _is_true(constraint.get(f"{_MSDATA}PrimaryKey")):
            continue
        selector = constraint.find(f"{_XS}selector")
        field = constraint.find(f"{_XS}field")
        if selector is None or field is None:
            continue
        table_name = _strip_prefix(selector.get("xpath", "").lstrip("./"))
        column_name = _strip_prefix(field.get("xpath", ""))
        table = tables.get(table_name)
        if table is not None and table.column(column_name) is not None:
            table.primary_key = column_name


def _check_required_tables(tables: Dict[str, TableSchema]) -> None:
    for table_name, columns in REQUIRED_COLUMNS.items():
        table = tables.get(table_name)
        if table is None:
            raise LoadError(f"Schema does not declare the '{table_name}' table")
        for col_name, must_be_int in columns.items():
            col = table.column(col_name)
            if col is None:
                raise LoadError(f"Schema table '{table_name}' has no '{col_name}' column")
            if must_be_int and not col.is_integer:
                raise LoadError(f"Schema column '{table_name}.{col_name}' must be an integer type")


def _check_song_identity(song: TableSchema) -> None:
    """Song ids are store-assigned from 1 upward and keyed on the id column."""
    id_col = song.column("id")
    if not id_col.auto_increment:
        raise LoadError("Schema column 'song.id' must be declared AutoIncrement")
    if id_col.auto_increment_seed < 1:
        raise LoadError(f"Schema AutoIncrementSeed for 'song.id' must be at least 1, got {id_col.auto_increment_seed}")
    if id_col.auto_increment_step < 1:
        raise LoadError(f"Schema AutoIncrementStep for 'song.id' must be at least 1, got {id_col.auto_increment_step}")
    if song.primary_key not in (None, "id"):
        raise LoadError(f"Schema primary key of 'song' must be 'id', got '{song.primary_key}'")


def load_schema(source: Source) -> CatalogSchema:
    """Read a DataSet-style XSD into a CatalogSchema. Raises LoadError."""
    schema_root = parse_xml(source, "catalog schema").getroot()
    if schema_root.tag != f"{_XS}schema":
        raise LoadError(f"Not an XML Schema document (root is <{schema_root.tag}>)")

    dataset = _find_dataset(schema_root)
    root_name = dataset.get("name")
    if not root_name:
        raise LoadError("Dataset root element has no name")

    named = {el.get("name"): el for el in schema_root.findall(f"{_XS}element")}
    tables: Dict[str, TableSchema] = {}
    for table_el in _row_particles(dataset.find(f"{_XS}complexType")):
        ref = table_el.get("ref")
        if ref is not None:
            table_el = named.get(_strip_prefix(ref))
            if table_el is None:
                raise LoadError(f"Schema references undeclared element '{ref}'")
        name = table_el.get("name")
        if not name:
            raise LoadError("Table element without a name")
        columns = [_parse_column(c) for c in _row_particles(table_el.find(f"{_XS}complexType"))]
        tables[name] = TableSchema(name=name, columns=columns)

    _apply_primary_keys(dataset, tables)
    _check_required_tables(tables)
    _check_song_identity(tables[SONG_TABLE])

    logger.debug(f"Schema '{root_name}' declares tables: {', '.join(tables)}")
    return CatalogSchema(root=root_name, tables=tables)
