#!/usr/bin/env python3
"""
External Sync command-line tool.

Triggers and inspects replication runs on a running service.
"""

import sys
import json
import argparse
import requests
from typing import Dict, List, Any, Optional
import logging

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Full syncs of large catalogs run for minutes
SYNC_TIMEOUT = 1800


class ExternalSyncAdmin:
    """External Sync API client"""

    def __init__(self, base_url: str = "http://localhost:8000", api_token: Optional[str] = None):
        self.base_url = base_url.rstrip('/')
        self.session = requests.Session()

        if api_token:
            self.session.headers.update({'Authorization': f'Bearer {api_token}'})

        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'ExternalSync-Admin-CLI/1.0'
        })

    def _api_call(
        self,
        endpoint: str,
        method: str = 'GET',
        data: Optional[Dict] = None,
        timeout: int = 30,
        allow_error: bool = False
    ) -> Dict[str, Any]:
        """Perform an API call and return the decoded JSON body"""
        url = f"{self.base_url}{endpoint}"

        try:
            if method.upper() == 'GET':
                response = self.session.get(url, timeout=timeout)
            elif method.upper() == 'POST':
                response = self.session.post(url, json=data, timeout=timeout)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")

            # Table-level failures still carry a JSON report
            if allow_error:
                try:
                    return response.json()
                except ValueError:
                    pass

            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            logger.error(f"API call failed: {e}")
            if getattr(e, 'response', None) is not None:
                try:
                    logger.error(f"Error details: {e.response.json()}")
                except ValueError:
                    logger.error(f"HTTP {e.response.status_code}: {e.response.text}")
            raise

    def health_check(self) -> Dict[str, Any]:
        """Store connection health"""
        return self._api_call('/health', allow_error=True)

    def get_status(self) -> Dict[str, Any]:
        """Row-count status of sampled tables"""
        return self._api_call('/status')

    def sync_full(self) -> Dict[str, Any]:
        """Full sync of every catalog table"""
        return self._api_call('/full', method='POST', timeout=SYNC_TIMEOUT)

    def sync_table(self, table: str) -> Dict[str, Any]:
        """Sync one table"""
        return self._api_call(f'/table/{table}', method='POST', timeout=SYNC_TIMEOUT, allow_error=True)

    def sync_incremental(self, since: str) -> Dict[str, Any]:
        """Upsert rows changed since ``since``"""
        return self._api_call('/incremental', method='POST', data={"since": since}, timeout=SYNC_TIMEOUT)


def format_table(data: List[Dict], headers: List[str]) -> str:
    """Format rows as a text table"""
    if not data:
        return "No data"

    # Column widths
    col_widths = {}
    for header in headers:
        col_widths[header] = len(header)
        for row in data:
            value = str(row.get(header, ''))
            col_widths[header] = max(col_widths[header], len(value))

    lines = []

    header_line = " | ".join(header.ljust(col_widths[header]) for header in headers)
    lines.append(header_line)
    lines.append("-" * len(header_line))

    for row in data:
        data_line = " | ".join(str(row.get(header, '')).ljust(col_widths[header]) for header in headers)
        lines.append(data_line)

    return "\n".join(lines)


def format_json(data: Any, indent: int = 2) -> str:
    """Format JSON output"""
    return json.dumps(data, indent=indent, ensure_ascii=False)


STATS_HEADERS = ["table", "records_synced", "success", "duration_ms", "error"]


def print_report(result: Dict[str, Any], output_format: str) -> None:
    if output_format == "json":
        print(format_json(result))
        return
    if "message" in result:
        print(result["message"])
    tables = result.get("tables") or ([result["table"]] if "table" in result else [])
    print(format_table(tables, STATS_HEADERS))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="External Sync administration tool")
    parser.add_argument("--url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--token", help="API bearer token")
    parser.add_argument("--format", choices=["table", "json"], default="table", help="Output format")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("health", help="Store connection health")
    subparsers.add_parser("status", help="Row-count status of sampled tables")
    subparsers.add_parser("full", help="Full sync of every catalog table")

    table_parser = subparsers.add_parser("table", help="Sync a single table")
    table_parser.add_argument("name", help="Catalog table name")

    incremental_parser = subparsers.add_parser("incremental", help="Sync rows changed since a timestamp")
    incremental_parser.add_argument("--since", required=True, help="ISO-8601 timestamp, e.g. 2025-01-01T00:00:00Z")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point; returns the process exit code"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    admin = ExternalSyncAdmin(args.url, args.token)

    try:
        if args.command == "health":
            result = admin.health_check()
            print(format_json(result))
            return 0 if result.get("status") == "healthy" else 1

        elif args.command == "status":
            result = admin.get_status()
            if args.format == "json":
                print(format_json(result))
            else:
                rows = [{"table": table, **counts} for table, counts in result.get("sample_counts", {}).items()]
                print(f"Catalog tables: {result.get('total_tables', 0)}")
                print(format_table(rows, ["table", "source", "destination", "synced", "error"]))
            return 0

        elif args.command == "full":
            result = admin.sync_full()
            print_report(result, args.format)
            failed = [t for t in result.get("tables", []) if not t.get("success")]
            return 1 if failed else 0

        elif args.command == "table":
            result = admin.sync_table(args.name)
            if "error" in result and "table" not in result:
                print(result["error"])
                return 1
            print_report(result, args.format)
            return 0 if result.get("success") else 1

        elif args.command == "incremental":
            result = admin.sync_incremental(args.since)
            print_report(result, args.format)
            failed = [t for t in result.get("tables", []) if not t.get("success")]
            return 1 if failed else 0

    except Exception as e:
        logger.error(f"Command failed: {e}")
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
