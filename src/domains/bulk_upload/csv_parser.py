# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CSV parsing and column mapping for student imports.

The school MIS export uses human-readable headers. They are mapped to
StudentRow fields; unknown headers are normalised (lower-cased, whitespace
removed) and otherwise ignored. Rows whose cells are all blank are
dropped before counting.

Example:
    >>> rows = parse_student_csv(b"MIS ID,Forename,Legal Surname,Reg,Year,Primary Email\\n"
    ...                          b"1001,Ada,Lovelace,7A,Year 7,mum@example.com\\n")
    >>> rows[0].display_name
    'Ada Lovelace'
"""

import csv
import io
import re
from dataclasses import asdict, dataclass
from typing import Any

from src.domains.bulk_upload.exceptions import InvalidUploadError

HEADER_MAP: dict[str, str] = {
    "MIS ID": "mis_id",
    "Forename": "forename",
    "Legal Surname": "legal_surname",
    "Reg": "reg",
    "Year": "year",
    "Primary Email": "primary_email",
    "Gender": "gender",
    "DOB": "dob",
}

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class StudentRow:
    """One mapped CSV row. Values are stripped strings, empty when absent."""

    mis_id: str = ""
    forename: str = ""
    legal_surname: str = ""
    reg: str = ""
    year: str = ""
    primary_email: str = ""
    gender: str = ""
    dob: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.forename} {self.legal_surname}".strip()

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StudentRow":
        known = {name: str(data.get(name) or "").strip() for name in cls.__dataclass_fields__}
        return cls(**known)


def map_header(header: str) -> str:
    """Map a CSV header to a StudentRow field name (or a normalised key)."""
    header = header.strip()
    return HEADER_MAP.get(header) or _WHITESPACE.sub("", header.lower())


def parse_student_csv(content: bytes) -> list[StudentRow]:
    """Parse CSV bytes into student rows.

    Args:
        content: Raw file content, UTF-8 with optional BOM.

    Returns:
        Non-blank rows in file order.

    Raises:
        InvalidUploadError: If the content is not decodable CSV.
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InvalidUploadError("CSV file must be UTF-8 encoded.") from e

    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        header = next(reader, None)
        if header is None:
            return []
        keys = [map_header(h) for h in header]

        rows: list[StudentRow] = []
        for record in reader:
            values = {
                key: value.strip()
                for key, value in zip(keys, record)
                if key in StudentRow.__dataclass_fields__
            }
            if not any(cell.strip() for cell in record):
                continue
            rows.append(StudentRow(**values))
    except csv.Error as e:
        raise InvalidUploadError(f"Malformed CSV: {e}") from e

    return rows
