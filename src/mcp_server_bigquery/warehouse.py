"""
Thin async adapter around the BigQuery client.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from google.cloud import bigquery

from mcp_server_bigquery.config import ServerConfig, WarehouseIdentity
from mcp_server_bigquery.env_utils import resolve_credentials

logger = logging.getLogger("mcp-server-bigquery")

DEFAULT_MAXIMUM_BYTES_BILLED = "1000000000"


class BigQueryWarehouse:
    """Dataset, table and query access for a single BigQuery project.

    The client is blocking, so every call runs in a worker thread and the
    event loop is only suspended while BigQuery is doing network I/O. Client
    errors are propagated unchanged.
    """

    def __init__(self, client: bigquery.Client, identity: WarehouseIdentity):
        self.client = client
        self.identity = identity

    @classmethod
    def from_config(cls, config: ServerConfig) -> "BigQueryWarehouse":
        credentials = resolve_credentials(config.key_file)

        client = bigquery.Client(
            project=config.project_id,
            credentials=credentials,
            location=config.location,
        )
        logger.info(f"BigQuery client initialized for project '{client.project}'")
        return cls(client, config.identity)

    def full_table_id(self, dataset_id: str, table_id: str) -> str:
        return f"{self.identity.project_id}.{dataset_id}.{table_id}"

    async def list_datasets(self) -> List[str]:
        datasets = await asyncio.to_thread(
            lambda: list(self.client.list_datasets(project=self.identity.project_id))
        )
        return [ds.dataset_id for ds in datasets]

    async def list_tables(self, dataset_id: str) -> List[Any]:
        dataset_ref = bigquery.DatasetReference(self.identity.project_id, dataset_id)
        return await asyncio.to_thread(lambda: list(self.client.list_tables(dataset_ref)))

    async def get_table(self, dataset_id: str, table_id: str) -> bigquery.Table:
        return await asyncio.to_thread(self.client.get_table, self.full_table_id(dataset_id, table_id))

    async def query(
        self,
        sql: str,
        maximum_bytes_billed: Optional[str] = DEFAULT_MAXIMUM_BYTES_BILLED,
    ) -> List[Dict[str, Any]]:
        """Run a query and return its rows as column -> value dicts.

        Args:
            sql: Already gated and qualified SQL
            maximum_bytes_billed: Byte-billing cap, as a decimal string

        Returns:
            The result rows, in order
        """
        job_config = bigquery.QueryJobConfig(
            maximum_bytes_billed=int(maximum_bytes_billed or DEFAULT_MAXIMUM_BYTES_BILLED),
        )

        def run() -> List[Dict[str, Any]]:
            query_job = self.client.query(
                sql,
                job_config=job_config,
                location=self.identity.location,
            )
            return [dict(row.items()) for row in query_job.result()]

        return await asyncio.to_thread(run)
