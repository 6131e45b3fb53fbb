"""Contract source retrieval and normalization."""

from .etherscan import (
    ContractMetadata,
    EtherscanClient,
    EtherscanConfigError,
    EtherscanError,
    EtherscanRateLimitError,
    SourceNotVerifiedError,
)
from .fetchers import SourceFetchError, decode_upload, fetch_url_text
from .normalizer import (
    FILE_SEPARATOR,
    EmptySourceError,
    MalformedBundleError,
    SourceFileEntry,
    SourceShape,
    detect_shape,
    normalize,
    split_bundle,
)

__all__ = [
    "ContractMetadata",
    "EmptySourceError",
    "EtherscanClient",
    "EtherscanConfigError",
    "EtherscanError",
    "EtherscanRateLimitError",
    "FILE_SEPARATOR",
    "MalformedBundleError",
    "SourceFetchError",
    "SourceFileEntry",
    "SourceNotVerifiedError",
    "SourceShape",
    "decode_upload",
    "detect_shape",
    "fetch_url_text",
    "normalize",
    "split_bundle",
]
