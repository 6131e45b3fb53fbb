"""Validation of user submissions (URL, upload, address, pasted code)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

ADDRESS_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")
ALLOWED_EXTENSIONS: tuple[str, ...] = (".sol", ".vy")
TECH_QUERY_IDENTIFIER = "Pasted Code for Technology Analysis"


class SubmissionError(RuntimeError):
    """Raised when a submission fails validation."""

    def __init__(self, message: str, identifier: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class InputType(str, Enum):
    URL = "url"
    FILE = "file"
    ADDRESS = "address"
    TECH_QUERY = "techQuery"


@dataclass
class ContractSubmission:
    """A validated request to analyze a contract."""

    input_type: InputType
    identifier: str
    url: Optional[str] = None
    address: Optional[str] = None
    file_content: Optional[bytes] = None
    code: Optional[str] = None

    @property
    def is_technology_query(self) -> bool:
        return self.input_type is InputType.TECH_QUERY


def validate_address(value: object) -> str:
    raw = value.strip() if isinstance(value, str) else ""
    if not raw:
        raise SubmissionError(
            "Invalid Contract Address: Please enter a contract address.",
            value if isinstance(value, str) else None,
        )
    if not ADDRESS_PATTERN.match(raw):
        raise SubmissionError("Invalid Contract Address: Invalid Ethereum address format.", raw)
    return raw


def validate_url(value: object) -> str:
    raw = value.strip() if isinstance(value, str) else ""
    if not raw:
        raise SubmissionError(
            "Invalid URL: Please enter a contract URL.",
            value if isinstance(value, str) else None,
        )
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise SubmissionError("Invalid URL: Invalid URL format.", raw)
    return raw


def validate_filename(filename: object) -> str:
    if not isinstance(filename, str) or not filename.strip():
        raise SubmissionError("No file uploaded.")
    name = filename.strip()
    if not name.endswith(ALLOWED_EXTENSIONS):
        raise SubmissionError("Invalid file type. Please upload a .sol or .vy file.", name)
    return name


def build_submission(
    input_type: object,
    *,
    contract_url: object = None,
    contract_address: object = None,
    file_name: object = None,
    file_content: bytes | None = None,
    tech_query_code: object = None,
) -> ContractSubmission:
    """Validate raw form values and return a ``ContractSubmission``."""
    try:
        kind = InputType(input_type)
    except ValueError as exc:
        raise SubmissionError("Invalid input type selected.") from exc

    if kind is InputType.URL:
        url = validate_url(contract_url)
        return ContractSubmission(input_type=kind, identifier=url, url=url)

    if kind is InputType.ADDRESS:
        address = validate_address(contract_address)
        return ContractSubmission(input_type=kind, identifier=address, address=address)

    if kind is InputType.FILE:
        if file_content is None:
            raise SubmissionError("No file uploaded.")
        name = validate_filename(file_name)
        return ContractSubmission(input_type=kind, identifier=name, file_content=file_content)

    code = tech_query_code if isinstance(tech_query_code, str) else ""
    if not code.strip():
        raise SubmissionError(
            "Please paste smart contract code for technology analysis.",
            TECH_QUERY_IDENTIFIER,
        )
    return ContractSubmission(input_type=kind, identifier=TECH_QUERY_IDENTIFIER, code=code)


__all__ = [
    "ADDRESS_PATTERN",
    "ContractSubmission",
    "InputType",
    "SubmissionError",
    "TECH_QUERY_IDENTIFIER",
    "build_submission",
    "validate_address",
    "validate_filename",
    "validate_url",
]
