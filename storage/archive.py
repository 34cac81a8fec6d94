# storage/archive.py
from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Iterable, Union


ARCHIVE_FOLDER = "product-type-export"


def bundle_files(
    files: Iterable[Union[str, Path]],
    archive_path: Union[str, Path],
    folder: str = ARCHIVE_FOLDER,
) -> Path:
    """
    Zip finished export files into one archive:
      <archive_path>
        <folder>/<file name>
    """
    archive_path = Path(archive_path)
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for f in files:
            p = Path(f)
            zf.write(p, arcname=f"{folder}/{p.name}")
    return archive_path
