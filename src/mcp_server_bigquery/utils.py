"""
SQL gating and qualification for queries forwarded to BigQuery.

Everything here is pattern matching over the SQL text, not parsing. Callers
should go through :func:`qualify`, which returns an explicit
:class:`Accepted` or :class:`Rejected` result.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from mcp_server_bigquery.errors import (
    BigQueryMCPError,
    MissingDatasetForInformationSchema,
    QualificationError,
)

logger = logging.getLogger("mcp-server-bigquery")

FORBIDDEN_KEYWORDS = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "CREATE",
    "DROP",
    "ALTER",
    "MERGE",
    "TRUNCATE",
    "GRANT",
    "REVOKE",
    "EXECUTE",
    "BEGIN",
    "COMMIT",
    "ROLLBACK",
)

FORBIDDEN_PATTERN = re.compile(
    r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b",
    re.IGNORECASE,
)

# FROM [dataset.]INFORMATION_SCHEMA.TABLES, dataset optionally in backticks
INFORMATION_SCHEMA_PATTERN = re.compile(
    r"\bFROM\s+(?:(`?)([\w-]+)\1\.)?INFORMATION_SCHEMA\.TABLES\b",
    re.IGNORECASE,
)

# FROM <identifier> that is neither dotted nor a function call; a quoted
# identifier may start with a digit
BARE_TABLE_PATTERN = re.compile(
    r"\bFROM\s+(?:`([\w-]+)`|([A-Za-z_][\w-]*))(?![\w`.(-])",
    re.IGNORECASE,
)

MISSING_DATASET_MESSAGE = (
    "Dataset must be specified when querying INFORMATION_SCHEMA "
    "(e.g. dataset.INFORMATION_SCHEMA.TABLES)"
)


@dataclass(frozen=True)
class Accepted:
    """The query may be sent to BigQuery as ``sql``."""

    sql: str


@dataclass(frozen=True)
class Rejected:
    """The query must not be sent to BigQuery."""

    reason: QualificationError
    message: str

    def to_error(self) -> BigQueryMCPError:
        return self.reason.exception_class(self.message)


QualificationResult = Union[Accepted, Rejected]


def check_forbidden(sql: str) -> QualificationResult:
    """
    Reject SQL containing any mutating keyword as a standalone word.

    The check is purely lexical: a keyword inside a string literal or a
    comment is still rejected, while a keyword that is only part of a longer
    identifier (``dropdown_count``) is not.

    Args:
        sql: The SQL query to check

    Returns:
        Accepted with the unchanged SQL, or Rejected(FORBIDDEN_STATEMENT)
    """
    match = FORBIDDEN_PATTERN.search(sql)
    if match:
        logger.warning(f"Rejecting query containing forbidden keyword: {match.group(1).upper()}")
        return Rejected(
            QualificationError.FORBIDDEN_STATEMENT,
            "Only READ operations are allowed",
        )
    return Accepted(sql)


def qualify_information_schema(sql: str, project_id: str) -> str:
    """
    Qualify INFORMATION_SCHEMA.TABLES references with the project ID.

    INFORMATION_SCHEMA.TABLES is dataset-scoped, so a reference without a
    dataset prefix cannot be qualified and aborts the whole rewrite.

    Args:
        sql: The SQL query to transform
        project_id: The Google Cloud project ID

    Returns:
        Transformed SQL query

    Raises:
        MissingDatasetForInformationSchema: If a reference has no dataset
    """

    def replace(match):
        dataset = match.group(2)
        if not dataset:
            raise MissingDatasetForInformationSchema(MISSING_DATASET_MESSAGE)
        return f"FROM `{project_id}.{dataset}.INFORMATION_SCHEMA.TABLES`"

    return INFORMATION_SCHEMA_PATTERN.sub(replace, sql)


def qualify_bare_tables(sql: str, project_id: str, dataset_id: str) -> str:
    """
    Fully qualify unqualified table names that directly follow FROM.

    Only the token after a literal FROM is considered. Tables referenced from
    JOIN clauses, subqueries or CTEs are left alone.

    Args:
        sql: The SQL query to transform
        project_id: The Google Cloud project ID
        dataset_id: Dataset to qualify bare table names with

    Returns:
        Transformed SQL query
    """

    def replace(match):
        table = match.group(1) or match.group(2)
        return f"FROM `{project_id}.{dataset_id}.{table}`"

    return BARE_TABLE_PATTERN.sub(replace, sql)


def qualify(sql: str, project_id: str, dataset_id: Optional[str] = None) -> QualificationResult:
    """
    Gate and qualify a query before it is sent to BigQuery.

    Args:
        sql: The SQL query from the client
        project_id: The Google Cloud project ID
        dataset_id: Optional dataset used to qualify bare table names

    Returns:
        Accepted with the SQL to execute, or Rejected with the reason
    """
    result = check_forbidden(sql)
    if isinstance(result, Rejected):
        return result

    if dataset_id:
        qualified = qualify_bare_tables(sql, project_id, dataset_id)
        if qualified != sql:
            logger.info(f"Qualified bare table names with dataset {dataset_id}: {qualified}")
        sql = qualified

    if "INFORMATION_SCHEMA" in sql.upper():
        logger.info(f"Transforming INFORMATION_SCHEMA query: {sql}")
        try:
            sql = qualify_information_schema(sql, project_id)
        except MissingDatasetForInformationSchema as e:
            return Rejected(QualificationError.MISSING_DATASET_FOR_INFORMATION_SCHEMA, str(e))
        logger.info(f"Transformed query: {sql}")

    return Accepted(sql)
