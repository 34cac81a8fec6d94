from __future__ import annotations

import json
import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Set, Tuple, Union

from config.export_config import ExportConfig
from ctp.client import CommercetoolsClient
from ctp.product_types import ProductTypeSource
from export.attributes import (
    accumulate_keys,
    canonicalize,
    extract_keys,
    number_of_rows,
    project,
    sort_attributes,
)
from export.models import AttributeDefinition, MalformedAttributeError, parse_attribute
from storage.archive import ARCHIVE_FOLDER, bundle_files
from storage.download_store import DownloadStore
from storage.writer import TabularWriter


logger = logging.getLogger("product_type_export")


PRODUCT_ATTRIBUTES_FILE = "products-to-attributes.{fmt}"
ATTRIBUTES_FILE = "attributes.{fmt}"
ARCHIVE_FILE = "product-types.zip"


class RecordSource(Protocol):
    def iter_product_types(self) -> Iterator[Dict[str, Any]]:
        ...


@dataclass(frozen=True)
class ProductTypeSummary:
    name: str
    key: Optional[str]
    description: Optional[str]
    attributes: Tuple[str, ...]


def error_entry(exc: BaseException) -> Dict[str, str]:
    return {"type": type(exc).__name__, "message": str(exc)}


class ProductTypeExport:
    """
    Exports product types into two tables:

      products-to-attributes.<fmt>  one row per product type, X per attribute it has
      attributes.<fmt>              every distinct attribute, flattened; enum values
                                    continue on the following rows

    run() works in two passes over the downloaded product types. The first pass
    collects attribute names and key paths, which fix the columns of both tables;
    the second pass writes the rows.
    """

    def __init__(
        self,
        client: Optional[CommercetoolsClient] = None,
        config: Union[ExportConfig, Dict[str, Any], None] = None,
        source: Optional[RecordSource] = None,
    ) -> None:
        self.client = client
        self.config = config if isinstance(config, ExportConfig) else ExportConfig(**(config or {}))
        self.source = source

        self.attribute_names: List[str] = []
        self.attribute_keys: List[str] = []
        self._reported: Set[str] = set()
        self.summary: Dict[str, Any] = {
            "errors": [],
            "exported": {
                "productTypes": 0,
                "attributes": 0,
            },
        }

    def summary_report(self) -> str:
        return json.dumps(self.summary, indent=2, ensure_ascii=False)

    def get_product_type_source(self) -> RecordSource:
        if self.source is not None:
            return self.source
        if self.client is None:
            raise RuntimeError("No commercetools client or record source configured")
        return ProductTypeSource(self.client, where=self.config.where)

    def run(self) -> Dict[str, Any]:
        cfg = self.config
        product_attributes_file = PRODUCT_ATTRIBUTES_FILE.format(fmt=cfg.export_format)
        attributes_file = ATTRIBUTES_FILE.format(fmt=cfg.export_format)

        work_dir: Optional[Path] = None
        try:
            work_dir = Path(tempfile.mkdtemp(prefix="product-type-export-"))
            store = DownloadStore(work_dir / "product-types.jsonl")
            # compressed exports write the tables next to the download and zip them from there
            out_folder = work_dir if cfg.compress_output else Path(cfg.output_folder)
            Path(cfg.output_folder).mkdir(parents=True, exist_ok=True)

            self.download_product_types(store)
            attribute_names, attribute_keys = self.collect_attributes(store)
            self.attribute_names = sort_attributes(attribute_names)
            self.attribute_keys = sort_attributes(attribute_keys)

            self.write_product_types(
                self.iter_product_type_summaries(store),
                out_folder / product_attributes_file,
            )
            self.write_attributes(
                self.iter_unique_attributes(store),
                out_folder / attributes_file,
            )

            if cfg.compress_output:
                archive = bundle_files(
                    [out_folder / product_attributes_file, out_folder / attributes_file],
                    Path(cfg.output_folder) / ARCHIVE_FILE,
                    folder=ARCHIVE_FOLDER,
                )
                logger.info("Archive written: %s", archive)
        except Exception as exc:
            logger.exception("Product type export failed")
            self.summary["errors"].append(error_entry(exc))
        finally:
            if work_dir is not None:
                shutil.rmtree(work_dir, ignore_errors=True)

        return self.summary

    def download_product_types(self, store: DownloadStore) -> int:
        count = store.write_all(self.get_product_type_source().iter_product_types())
        logger.debug("product types downloaded: %d", count)
        return count

    def _parse(self, attribute: Any, record_error: bool = False) -> Optional[AttributeDefinition]:
        try:
            return parse_attribute(attribute)
        except MalformedAttributeError as exc:
            # a broken definition shared by several product types is reported once
            if record_error and str(exc) not in self._reported:
                self._reported.add(str(exc))
                logger.warning("Skipping attribute: %s", exc)
                self.summary["errors"].append(error_entry(exc))
            return None

    def collect_attributes(self, store: DownloadStore) -> Tuple[List[str], List[str]]:
        """
        First pass: distinct attribute names (first-seen order) and the key paths
        of the first definition of each name.
        """
        attribute_names: List[str] = []
        attribute_keys: List[str] = []
        seen = set()
        longest_values = 0

        for product_type in store.replay():
            for attr in product_type.get("attributes") or []:
                definition = self._parse(attr, record_error=True)
                if definition is None or definition.name in seen:
                    continue
                seen.add(definition.name)
                attribute_names.append(definition.name)
                attribute_keys = accumulate_keys(attribute_keys, extract_keys(attr))
                longest_values = max(longest_values, definition.value_count)

        logger.debug(
            "collected %s unique attributes, longest value list: %s",
            len(attribute_names), longest_values,
        )
        return attribute_names, attribute_keys

    def iter_product_type_summaries(self, store: DownloadStore) -> Iterator[ProductTypeSummary]:
        for product_type in store.replay():
            definitions = (self._parse(attr) for attr in product_type.get("attributes") or [])
            names = [d.name for d in definitions if d is not None]
            yield ProductTypeSummary(
                name=product_type.get("name"),
                key=product_type.get("key"),
                description=product_type.get("description"),
                attributes=tuple(names),
            )

    def iter_unique_attributes(self, store: DownloadStore) -> Iterator[Dict[str, Any]]:
        seen = set()
        for product_type in store.replay():
            for attr in product_type.get("attributes") or []:
                definition = self._parse(attr)
                if definition is None or definition.name in seen:
                    continue
                seen.add(definition.name)
                yield attr

    def _writer(self, destination: Path) -> TabularWriter:
        return TabularWriter(
            export_format=self.config.export_format,
            output_file=str(destination),
            encoding=self.config.encoding,
            delimiter=self.config.delimiter,
        )

    def write_product_types(self, summaries: Iterable[ProductTypeSummary], destination: Path) -> None:
        writer = self._writer(destination)
        try:
            writer.set_header(["name", "key", "description", *self.attribute_names])
            for pt in summaries:
                present = set(pt.attributes)
                enabled = ["X" if name in present else "" for name in self.attribute_names]
                writer.write([[pt.name, pt.key or "", pt.description, *enabled]])
                self.summary["exported"]["productTypes"] += 1
        finally:
            writer.flush()

    def write_attributes(self, attributes: Iterable[Dict[str, Any]], destination: Path) -> None:
        # the schema is frozen here, before the first attribute row is written
        schema = canonicalize(self.attribute_keys)
        row_count = number_of_rows(self.attribute_keys)

        writer = self._writer(destination)
        try:
            writer.set_header(schema.header_labels)
            for attribute in attributes:
                self.summary["exported"]["attributes"] += 1
                writer.write(project(attribute, schema, row_count))
        finally:
            writer.flush()
