from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

from ctp.client import CommercetoolsClient, TransportError


logger = logging.getLogger("product_type_export")


class ProductTypeSource:
    """
    Pages through all product types, sorted by id.

    The next page continues after the last id seen; commercetools combines
    repeated `where` parameters with AND, so the user predicate is passed as is.
    """
    ENDPOINT = "product-types"

    def __init__(self, client: CommercetoolsClient, where: str = "", page_size: int = 500):
        self.client = client
        self.where = (where or "").strip()
        self.page_size = page_size
        self._http_requests = 0

    def _params(self, last_id: Optional[str]) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "limit": self.page_size,
            "sort": "id asc",
            "withTotal": "false",
        }
        predicates = []
        if self.where:
            predicates.append(self.where)
        if last_id:
            predicates.append(f'id > "{last_id}"')
        if predicates:
            params["where"] = predicates
        return params

    def iter_pages(self) -> Iterator[List[Dict[str, Any]]]:
        last_id: Optional[str] = None
        while True:
            self._http_requests += 1
            res = self.client.get(self.ENDPOINT, params=self._params(last_id))
            if not res.ok:
                raise TransportError(
                    f"Fetching product types failed: HTTP {res.status_code}: {res.error}",
                    res.status_code,
                )

            results = (res.data or {}).get("results") or []
            logger.debug("fetched page %d with %d product types", self._http_requests, len(results))
            if results:
                yield results
            if len(results) < self.page_size:
                return
            last_id = results[-1]["id"]

    def iter_product_types(self) -> Iterator[Dict[str, Any]]:
        for page in self.iter_pages():
            yield from page
