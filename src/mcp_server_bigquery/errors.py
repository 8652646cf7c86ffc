"""
Exceptions raised by the MCP BigQuery server.
"""
import enum


class BigQueryMCPError(Exception):
    """Base class for errors raised by this server."""


class ConfigError(BigQueryMCPError):
    """Invalid command-line arguments, environment or credentials file."""


class ForbiddenStatement(BigQueryMCPError):
    """The query contains a statement that is not read-only."""


class MissingDatasetForInformationSchema(BigQueryMCPError):
    """INFORMATION_SCHEMA.TABLES was referenced without a dataset prefix."""


class InvalidResourceUri(BigQueryMCPError):
    """The resource URI does not point at a dataset schema."""


class MissingArgument(BigQueryMCPError):
    """A required tool or prompt argument was not supplied."""


class InvalidArgument(BigQueryMCPError):
    """A tool argument was supplied but is malformed."""


class UnknownOperation(BigQueryMCPError):
    """The requested tool or prompt does not exist."""


class QualificationError(enum.Enum):
    FORBIDDEN_STATEMENT = "ForbiddenStatement"
    MISSING_DATASET_FOR_INFORMATION_SCHEMA = "MissingDatasetForInformationSchema"

    @property
    def exception_class(self):
        if self is QualificationError.FORBIDDEN_STATEMENT:
            return ForbiddenStatement
        return MissingDatasetForInformationSchema
