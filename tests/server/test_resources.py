"""Tests for dataset schema resources."""
import asyncio
import json
import re

import pytest

from mcp_server_bigquery.errors import InvalidResourceUri


def list_resources(server):
    return asyncio.run(server.list_resources())


def read_resource(server, uri):
    return asyncio.run(server.read_resource(uri))


class TestListResources:

    def test_one_resource_per_dataset(self, server):
        resources = list_resources(server)
        assert [r["uri"] for r in resources] == [
            "bigquery://proj/sales/schema",
            "bigquery://proj/empty/schema",
        ]
        assert resources[0]["name"] == "Dataset: sales (2 tables/views)"
        assert resources[0]["mimeType"] == "application/json"
        assert resources[0]["metadata"] == {
            "datasetId": "sales",
            "projectId": "proj",
            "resourceType": "dataset",
        }

    def test_minimal_variant_has_no_metadata(self, minimal_server):
        assert all("metadata" not in r for r in list_resources(minimal_server))

    def test_every_resource_reads_back_with_advertised_table_count(self, server):
        for resource in list_resources(server):
            advertised = int(re.search(r"\((\d+) tables/views\)", resource["name"]).group(1))
            contents = read_resource(server, resource["uri"])
            assert contents["uri"] == resource["uri"]
            assert len(json.loads(contents["text"])) == advertised


class TestReadResource:

    def test_table_schema(self, server):
        contents = read_resource(server, "bigquery://proj/sales/schema")
        assert contents["mimeType"] == "application/json"

        tables = json.loads(contents["text"])
        orders = tables[0]
        assert orders["datasetId"] == "sales"
        assert orders["tableId"] == "orders"
        assert orders["fullTableId"] == "proj.sales.orders"
        assert orders["type"] == "TABLE"
        assert [f["name"] for f in orders["schema"]] == ["order_id", "amount"]
        assert orders["schema"][0]["mode"] == "REQUIRED"
        assert orders["sampleQuery"] == "SELECT * FROM `proj.sales.orders` LIMIT 10"
        assert tables[1]["type"] == "VIEW"

    def test_minimal_variant_has_no_sample_query(self, minimal_server):
        tables = json.loads(read_resource(minimal_server, "bigquery://proj/sales/schema")["text"])
        assert all("sampleQuery" not in t for t in tables)

    @pytest.mark.parametrize(
        "uri",
        [
            "bigquery://proj/sales/tables",
            "bigquery://proj/sales",
            "bigquery://proj/schema",
            "bigquery://proj/sales/schema/",
        ],
    )
    def test_invalid_uri(self, server, uri):
        with pytest.raises(InvalidResourceUri):
            read_resource(server, uri)
