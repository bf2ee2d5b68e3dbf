"""
SQL reference extractor
Parses SQL text into the tables it touches and the columns it reads from each
"""
from typing import Dict, Iterator, List, Optional, Set, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from .errors import SqlParseError
from ..utils.logger import get_logger

logger = get_logger(__name__)

WILDCARD = "*"


class QueryFieldMap:
    """
    Case-insensitive mapping of table name -> referenced column names

    The first spelling seen for a table or column is the one reported.
    """

    def __init__(self):
        self._tables: Dict[str, str] = {}
        self._columns: Dict[str, Dict[str, str]] = {}

    def add_table(self, table: str) -> None:
        key = table.casefold()
        if key not in self._tables:
            self._tables[key] = table
            self._columns[key] = {}

    def add_column(self, table: str, column: str) -> None:
        self.add_table(table)
        columns = self._columns[table.casefold()]
        columns.setdefault(column.casefold(), column)

    def add_column_to_all(self, column: str) -> None:
        for key in self._tables:
            self._columns[key].setdefault(column.casefold(), column)

    def columns(self, table: str) -> Set[str]:
        return set(self.ordered_columns(table))

    def ordered_columns(self, table: str) -> List[str]:
        """Columns of a table in the order they were first referenced"""
        return list(self._columns.get(table.casefold(), {}).values())

    def tables(self) -> List[str]:
        return list(self._tables.values())

    def items(self) -> Iterator[Tuple[str, Set[str]]]:
        for key, table in self._tables.items():
            yield table, set(self._columns[key].values())

    def as_dict(self) -> Dict[str, List[str]]:
        return {table: sorted(columns) for table, columns in self.items()}

    def __contains__(self, table: object) -> bool:
        return isinstance(table, str) and table.casefold() in self._tables

    def __getitem__(self, table: str) -> Set[str]:
        if table not in self:
            raise KeyError(table)
        return self.columns(table)

    def __iter__(self) -> Iterator[str]:
        return iter(self.tables())

    def __len__(self) -> int:
        return len(self._tables)

    def __repr__(self):
        return f"QueryFieldMap({self.as_dict()})"


class SqlReferenceExtractor:
    """
    Walks a sqlglot tree and records table and column references

    Every named table is registered before any column is resolved, and
    sub-queries share one flat namespace with the outer statement. An
    unqualified column is attributed to every table in that namespace, since
    the real owner cannot be known without binding against the schema.
    """

    def __init__(self, dialect: Optional[str] = None):
        """
        Args:
            dialect: sqlglot dialect name (tsql, postgres, mysql, sqlite);
                     None uses the generic dialect
        """
        self.dialect = dialect

    def extract(self, sql: str) -> QueryFieldMap:
        """
        Extract table -> column references from SQL text

        Args:
            sql: one or more SQL statements

        Returns:
            QueryFieldMap, empty if no tables are referenced

        Raises:
            SqlParseError: the text is empty or cannot be parsed
        """
        statements = self._parse(sql)

        field_map = QueryFieldMap()
        aliases: Dict[str, Set[str]] = {}

        for statement in statements:
            self._register_tables(statement, field_map, aliases)

        for statement in statements:
            self._register_insert_columns(statement, field_map)
            self._register_columns(statement, field_map, aliases)

        logger.debug(f"Extracted SQL references: {field_map.as_dict()}")
        return field_map

    def _parse(self, sql: str) -> List[exp.Expression]:
        if not sql or not sql.strip():
            raise SqlParseError("SQL parsing error: empty query", sql=sql)

        try:
            parsed = sqlglot.parse(sql, read=self.dialect)
        except SqlglotError as e:
            raise SqlParseError(f"SQL parsing error: {e}", sql=sql) from e

        statements = [statement for statement in parsed if statement is not None]
        if not statements:
            raise SqlParseError("SQL parsing error: no statements found", sql=sql)

        for statement in statements:
            # sqlglot falls back to an opaque Command for text it cannot parse
            if isinstance(statement, exp.Command):
                raise SqlParseError(
                    f"SQL parsing error: unsupported statement '{statement.name}'",
                    sql=sql
                )

        return statements

    def _register_tables(
        self,
        statement: exp.Expression,
        field_map: QueryFieldMap,
        aliases: Dict[str, Set[str]]
    ) -> None:
        for table in statement.find_all(exp.Table):
            name = table.name
            if not name:
                # table-valued functions have no base name
                continue
            # an alias reused across scopes stays bound to every table it names
            aliases.setdefault(table.alias_or_name.casefold(), set()).add(name)
            field_map.add_table(name)

    def _register_insert_columns(self, statement: exp.Expression, field_map: QueryFieldMap) -> None:
        # INSERT INTO t (a, b): the target columns are identifiers, not Column nodes
        for schema in statement.find_all(exp.Schema):
            if not isinstance(schema.this, exp.Table) or not schema.this.name:
                continue
            for identifier in schema.expressions:
                if isinstance(identifier, exp.Identifier):
                    field_map.add_column(schema.this.name, identifier.name)

    def _register_columns(
        self,
        statement: exp.Expression,
        field_map: QueryFieldMap,
        aliases: Dict[str, Set[str]]
    ) -> None:
        for column in statement.find_all(exp.Column):
            name = WILDCARD if isinstance(column.this, exp.Star) else column.name
            if not name:
                continue

            qualifier = column.table
            if qualifier:
                for table in aliases.get(qualifier.casefold(), {qualifier}):
                    field_map.add_column(table, name)
            else:
                field_map.add_column_to_all(name)

        for select in statement.find_all(exp.Select):
            if any(isinstance(projection, exp.Star) for projection in select.expressions):
                field_map.add_column_to_all(WILDCARD)


def extract_field_references(sql: str, dialect: Optional[str] = None) -> QueryFieldMap:
    """
    Extract table -> column references from SQL text

    Raises:
        SqlParseError: the text cannot be parsed
    """
    return SqlReferenceExtractor(dialect).extract(sql)
