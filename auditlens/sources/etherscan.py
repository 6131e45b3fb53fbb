"""Etherscan `getsourcecode` client."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from ..config import DEFAULT_ETHERSCAN_URL
from ..logging import get_logger
from .fetchers import SourceFetchError
from .normalizer import EmptySourceError, normalize

logger = get_logger("sources.etherscan")

_PLACEHOLDER_KEYS = {"", "YOUR_ETHERSCAN_API_KEY_HERE"}


class EtherscanError(SourceFetchError):
    """Raised when the Etherscan API reports an error."""


class EtherscanConfigError(EtherscanError):
    """Raised when no usable API key is configured."""


class EtherscanRateLimitError(EtherscanError):
    """Raised when the API key has exhausted its rate limit."""


class SourceNotVerifiedError(EtherscanError):
    """Raised when the contract has no verified source on the explorer."""


@dataclass
class ContractMetadata:
    """Descriptive fields returned alongside the verified source."""

    address: str
    contract_name: str
    compiler_version: str
    license_type: str
    is_proxy: bool
    implementation: Optional[str]


class EtherscanClient:
    """Fetches verified contract sources and flattens multi-file bundles."""

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_ETHERSCAN_URL,
        chain_id: int | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.request_timeout = request_timeout

    def fetch_contract(self, address: str) -> Tuple[str, ContractMetadata]:
        """Return the flattened verified source and its metadata from one lookup."""
        record = self._fetch_record(address)
        return self._source_from_record(address, record), _metadata_from_record(address, record)

    def fetch_source(self, address: str) -> str:
        """Return the flattened verified source for ``address``."""
        return self._source_from_record(address, self._fetch_record(address))

    def fetch_metadata(self, address: str) -> ContractMetadata:
        """Return naming, compiler and proxy details for ``address``."""
        return _metadata_from_record(address, self._fetch_record(address))

    @staticmethod
    def _source_from_record(address: str, record: Dict[str, Any]) -> str:
        source_code = record.get("SourceCode")
        if not isinstance(source_code, str) or not source_code:
            raise SourceNotVerifiedError(
                "Contract source code not found or not verified on Etherscan "
                f"for address: {address}"
            )
        try:
            return normalize(source_code, context=address)
        except EmptySourceError as exc:
            raise EmptySourceError(
                f"Fetched contract code is empty for address: {address}. "
                "It might be an unverified proxy or an empty contract."
            ) from exc

    def _fetch_record(self, address: str) -> Dict[str, Any]:
        payload = self._request(address)
        status = str(payload.get("status", ""))
        message = str(payload.get("message", ""))
        result = payload.get("result")

        if status == "0":
            if message == "NOTOK" and "Max rate limit reached" in str(result):
                raise EtherscanRateLimitError(
                    "Etherscan API rate limit reached. Please try again later "
                    "or check your API key plan."
                )
            raise EtherscanError(
                f"Etherscan API error for address {address}: {message} - {result}"
            )

        if not isinstance(result, list) or not result or not isinstance(result[0], dict):
            raise SourceNotVerifiedError(
                "Contract source code not found or not verified on Etherscan "
                f"for address: {address}"
            )
        return result[0]

    def _request(self, address: str) -> Dict[str, Any]:
        if self.api_key is None or self.api_key.strip() in _PLACEHOLDER_KEYS:
            raise EtherscanConfigError(
                "ETHERSCAN_API_KEY is not set. Obtain one from "
                "https://etherscan.io/myapikey and add it to your .env file."
            )
        params: Dict[str, object] = {}
        if self.chain_id is not None:
            params["chainid"] = self.chain_id
        params.update(
            {
                "module": "contract",
                "action": "getsourcecode",
                "address": address,
                "apikey": self.api_key,
            }
        )
        url = f"{self.base_url}?{urlencode(params)}"
        request = Request(url, headers={"Accept": "application/json"}, method="GET")
        logger.debug("Requesting verified source for %s", address)
        try:
            with urlopen(request, timeout=self.request_timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            raise EtherscanError(
                f"Failed to fetch contract code from Etherscan API: {exc.reason}"
            ) from exc
        except URLError as exc:
            raise EtherscanError(
                f"Failed to fetch contract code from Etherscan API: {exc.reason}"
            ) from exc

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise EtherscanError("Etherscan API returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise EtherscanError("Etherscan API returned an unexpected payload")
        return payload


def _metadata_from_record(address: str, record: Dict[str, Any]) -> ContractMetadata:
    implementation = str(record.get("Implementation") or "").strip()
    return ContractMetadata(
        address=address,
        contract_name=str(record.get("ContractName") or ""),
        compiler_version=str(record.get("CompilerVersion") or ""),
        license_type=str(record.get("LicenseType") or ""),
        is_proxy=str(record.get("Proxy") or "0") == "1",
        implementation=implementation or None,
    )


__all__ = [
    "ContractMetadata",
    "EtherscanClient",
    "EtherscanConfigError",
    "EtherscanError",
    "EtherscanRateLimitError",
    "SourceNotVerifiedError",
]
