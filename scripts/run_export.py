from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from config.export_config import ExportConfig
from config.settings import Settings
from ctp.client import CommercetoolsClient
from export.product_type_export import ProductTypeExport
from storage.writer import SUPPORTED_FORMATS


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Export commercetools product types and their attributes to CSV/XLSX.",
    )
    ap.add_argument("--project-key", "-p", default=None,
                    help="commercetools project key (default: CTP_PROJECT_KEY)")
    ap.add_argument("--output-folder", "-o", required=True, help="Folder to write the export files to")
    ap.add_argument("--delimiter", "-d", default=",", help="CSV delimiter")
    ap.add_argument("--compress", action="store_true",
                    help="Bundle both files into product-types.zip")
    ap.add_argument("--export-format", "-f", choices=SUPPORTED_FORMATS, default="csv")
    ap.add_argument("--encoding", "-e", default="utf8", help="Output encoding for CSV files")
    ap.add_argument("--where", "-w", default="",
                    help='Predicate to filter product types, e.g. key in ("a", "b")')
    ap.add_argument("--dotenv", default=".env")
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(message)s")

    try:
        config = ExportConfig(
            output_folder=args.output_folder,
            delimiter=args.delimiter,
            compress_output=args.compress,
            export_format=args.export_format,
            encoding=args.encoding,
            where=args.where,
        )
        settings = Settings.from_env(project_key=args.project_key, dotenv_path=args.dotenv)
    except (ValueError, RuntimeError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    client = CommercetoolsClient(settings=settings)
    try:
        exporter = ProductTypeExport(client=client, config=config)
        exporter.run()
    finally:
        client.close()

    print(exporter.summary_report())
    if exporter.summary["errors"]:
        return 1

    exported = exporter.summary["exported"]
    print(f"[OK] Product types: {exported['productTypes']}", file=sys.stderr)
    print(f"[OK] Attributes: {exported['attributes']}", file=sys.stderr)
    print(f"[OK] Output: {config.output_folder}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
