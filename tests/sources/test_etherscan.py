"""Tests for the Etherscan source client."""

from __future__ import annotations

import json
from typing import Any, Dict, List
from urllib.error import URLError
from urllib.parse import parse_qs, urlparse

import pytest

from auditlens.sources.etherscan import (
    EtherscanClient,
    EtherscanConfigError,
    EtherscanError,
    EtherscanRateLimitError,
    SourceNotVerifiedError,
)
from auditlens.sources.normalizer import EmptySourceError
from tests._fixtures.fakes import FakeHTTPResponse

ADDRESS = "0x" + "ab" * 20


def _ok(source_code: str, **extra: Any) -> Dict[str, Any]:
    record = {"SourceCode": source_code, "ContractName": "Vault", "Proxy": "0"}
    record.update(extra)
    return {"status": "1", "message": "OK", "result": [record]}


@pytest.fixture
def http_calls() -> List[Dict[str, Any]]:
    return []


def _install(monkeypatch, calls: List[Dict[str, Any]], payload: Dict[str, Any]) -> None:
    def fake_urlopen(request, timeout=None):
        calls.append({"url": request.full_url, "timeout": timeout})
        return FakeHTTPResponse(payload)

    monkeypatch.setattr("auditlens.sources.etherscan.urlopen", fake_urlopen)


def test_fetch_source_builds_query_and_returns_flat_source(monkeypatch, http_calls) -> None:
    _install(monkeypatch, http_calls, _ok("contract Vault {}"))
    client = EtherscanClient("key-123", request_timeout=5.0)

    assert client.fetch_source(ADDRESS) == "contract Vault {}"

    parsed = urlparse(http_calls[0]["url"])
    query = parse_qs(parsed.query)
    assert parsed.netloc == "api.etherscan.io"
    assert query["module"] == ["contract"]
    assert query["action"] == ["getsourcecode"]
    assert query["address"] == [ADDRESS]
    assert query["apikey"] == ["key-123"]
    assert "chainid" not in query
    assert http_calls[0]["timeout"] == 5.0


def test_fetch_source_passes_chain_id_for_v2_endpoint(monkeypatch, http_calls) -> None:
    _install(monkeypatch, http_calls, _ok("contract Vault {}"))
    client = EtherscanClient("key", base_url="https://api.etherscan.io/v2/api", chain_id=8453)

    client.fetch_source(ADDRESS)

    query = parse_qs(urlparse(http_calls[0]["url"]).query)
    assert query["chainid"] == ["8453"]


def test_fetch_source_flattens_multi_file_bundle(monkeypatch, http_calls) -> None:
    bundle = {"language": "Solidity", "sources": {"A.sol": {"content": "X"}, "B.sol": {"content": "Y"}}}
    _install(monkeypatch, http_calls, _ok("{" + json.dumps(bundle) + "}"))

    source = EtherscanClient("key").fetch_source(ADDRESS)

    assert source == "X\n\n// ---- Next File ----\n\nY"


@pytest.mark.parametrize("api_key", [None, "", "  ", "YOUR_ETHERSCAN_API_KEY_HERE"])
def test_missing_api_key_is_rejected_before_any_request(monkeypatch, http_calls, api_key) -> None:
    _install(monkeypatch, http_calls, _ok("contract Vault {}"))

    with pytest.raises(EtherscanConfigError):
        EtherscanClient(api_key).fetch_source(ADDRESS)
    assert http_calls == []


def test_rate_limit_is_reported_distinctly(monkeypatch, http_calls) -> None:
    payload = {"status": "0", "message": "NOTOK", "result": "Max rate limit reached"}
    _install(monkeypatch, http_calls, payload)

    with pytest.raises(EtherscanRateLimitError, match="rate limit"):
        EtherscanClient("key").fetch_source(ADDRESS)


def test_api_error_includes_message_and_result(monkeypatch, http_calls) -> None:
    payload = {"status": "0", "message": "NOTOK", "result": "Invalid API Key"}
    _install(monkeypatch, http_calls, payload)

    with pytest.raises(EtherscanError, match="NOTOK - Invalid API Key"):
        EtherscanClient("key").fetch_source(ADDRESS)


def test_unverified_contract_raises(monkeypatch, http_calls) -> None:
    _install(monkeypatch, http_calls, _ok(""))

    with pytest.raises(SourceNotVerifiedError, match=ADDRESS):
        EtherscanClient("key").fetch_source(ADDRESS)


def test_empty_bundle_mentions_proxy(monkeypatch, http_calls) -> None:
    _install(monkeypatch, http_calls, _ok('{{"sources":{"A.sol":{"content":"  "}}}}'))

    with pytest.raises(EmptySourceError, match="unverified proxy"):
        EtherscanClient("key").fetch_source(ADDRESS)


def test_bundle_with_no_sources_mentions_proxy(monkeypatch, http_calls) -> None:
    _install(monkeypatch, http_calls, _ok('{{"sources":{}}}'))

    with pytest.raises(EmptySourceError, match="unverified proxy"):
        EtherscanClient("key").fetch_source(ADDRESS)


def test_network_failure_is_wrapped(monkeypatch) -> None:
    def failing_urlopen(request, timeout=None):
        raise URLError("connection refused")

    monkeypatch.setattr("auditlens.sources.etherscan.urlopen", failing_urlopen)

    with pytest.raises(EtherscanError, match="connection refused"):
        EtherscanClient("key").fetch_source(ADDRESS)


def test_fetch_contract_uses_a_single_request(monkeypatch, http_calls) -> None:
    _install(monkeypatch, http_calls, _ok("contract Vault {}", Proxy="0"))

    source, metadata = EtherscanClient("key").fetch_contract(ADDRESS)

    assert source == "contract Vault {}"
    assert metadata.address == ADDRESS
    assert metadata.contract_name == "Vault"
    assert metadata.is_proxy is False
    assert metadata.implementation is None
    assert len(http_calls) == 1


def test_fetch_metadata_reads_proxy_details(monkeypatch, http_calls) -> None:
    implementation = "0x" + "cd" * 20
    payload = _ok(
        "contract Proxy {}",
        Proxy="1",
        Implementation=implementation,
        CompilerVersion="v0.8.19+commit.7dd6d404",
        LicenseType="MIT",
    )
    _install(monkeypatch, http_calls, payload)

    metadata = EtherscanClient("key").fetch_metadata(ADDRESS)

    assert metadata.contract_name == "Vault"
    assert metadata.is_proxy is True
    assert metadata.implementation == implementation
    assert metadata.compiler_version.startswith("v0.8.19")
    assert metadata.license_type == "MIT"
