"""Shared fixtures: an in-memory warehouse standing in for BigQuery."""
from dataclasses import dataclass, field
from typing import Any, Dict, List

import pytest
from google.cloud import bigquery

from mcp_server_bigquery.config import ServerConfig, WarehouseIdentity
from mcp_server_bigquery.server import BigQueryMCPServer
from mcp_server_bigquery.warehouse import BigQueryWarehouse


@dataclass
class FakeTable:
    table_id: str
    table_type: str = "TABLE"
    schema: List[bigquery.SchemaField] = field(default_factory=list)


class FakeWarehouse(BigQueryWarehouse):
    """Warehouse that serves canned datasets and records executed queries."""

    def __init__(self, identity: WarehouseIdentity, datasets: Dict[str, List[FakeTable]], rows=None):
        super().__init__(client=None, identity=identity)
        self.datasets = datasets
        self.rows = rows if rows is not None else [{"f0_": 1}]
        self.queries = []
        self.query_error = None

    async def list_datasets(self) -> List[str]:
        return list(self.datasets)

    async def list_tables(self, dataset_id: str) -> List[Any]:
        return list(self.datasets[dataset_id])

    async def get_table(self, dataset_id: str, table_id: str) -> Any:
        return next(t for t in self.datasets[dataset_id] if t.table_id == table_id)

    async def query(self, sql: str, maximum_bytes_billed=None) -> List[Dict[str, Any]]:
        self.queries.append((sql, maximum_bytes_billed))
        if self.query_error is not None:
            raise self.query_error
        return self.rows


@pytest.fixture
def identity():
    return WarehouseIdentity(project_id="proj", location="us-central1")


@pytest.fixture
def datasets():
    return {
        "sales": [
            FakeTable(
                "orders",
                schema=[
                    bigquery.SchemaField("order_id", "INTEGER", mode="REQUIRED"),
                    bigquery.SchemaField("amount", "NUMERIC"),
                ],
            ),
            FakeTable("daily_totals", table_type="VIEW", schema=[bigquery.SchemaField("day", "DATE")]),
        ],
        "empty": [],
    }


@pytest.fixture
def warehouse(identity, datasets):
    return FakeWarehouse(identity, datasets)


@pytest.fixture
def server(identity, warehouse):
    return BigQueryMCPServer(ServerConfig(identity=identity), warehouse)


@pytest.fixture
def minimal_server(identity, warehouse):
    return BigQueryMCPServer(ServerConfig(identity=identity, extended=False), warehouse)
