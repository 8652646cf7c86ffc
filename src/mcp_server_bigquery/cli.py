"""Console entry point: ``mcp-server-bigquery``."""
import sys
from typing import List, Optional

from mcp_server_bigquery.server import main


def cli_main(argv: Optional[List[str]] = None) -> None:
    main(sys.argv[1:] if argv is None else argv)


if __name__ == "__main__":
    cli_main()
