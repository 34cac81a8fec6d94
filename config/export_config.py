from __future__ import annotations

from pydantic import BaseModel, validator

from storage.writer import SUPPORTED_FORMATS, normalize_encoding


class ExportConfig(BaseModel):
    output_folder: str
    delimiter: str = ","
    compress_output: bool = False
    export_format: str = "csv"
    encoding: str = "utf8"
    where: str = ""

    @validator("output_folder")
    def output_folder_given(cls, v: str) -> str:
        if not str(v).strip():
            raise ValueError(
                "Missing output folder. "
                'Please provide a folder to export to using the "output_folder" option.'
            )
        return v

    @validator("delimiter")
    def single_char_delimiter(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError("delimiter must be a single character")
        return v

    @validator("export_format")
    def supported_format(cls, v: str) -> str:
        fmt = str(v).strip().lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(f"export_format must be one of: {', '.join(SUPPORTED_FORMATS)}")
        return fmt

    @validator("encoding")
    def known_encoding(cls, v: str) -> str:
        normalize_encoding(v)
        return v
