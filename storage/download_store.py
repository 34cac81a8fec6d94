# storage/download_store.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Union


class DownloadStore:
    """
    Downloaded product types as JSONL (one record per line, arrival order).

    The export reads the records more than once: replay() re-opens the file
    each time, so only one record is held in memory at a time.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def write_all(self, records: Iterable[Dict[str, Any]]) -> int:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        count = 0
        with self.path.open("w", encoding="utf-8") as f:
            for rec in records:
                f.write(json.dumps(rec, ensure_ascii=False))
                f.write("\n")
                count += 1
        return count

    def replay(self) -> Iterator[Dict[str, Any]]:
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                yield json.loads(line)
