from enhanced_fetch.core.exceptions import (
    FetchError,
    TransportError,
    InvalidRequestError,
    NetworkError,
    CancellationError,
    RequestTimeoutError,
    StatusRejection,
    ResponseDecodeError
)
from enhanced_fetch.execution.cancellation import CancellationToken
from enhanced_fetch.execution.executor import RequestExecutor
from enhanced_fetch.execution.http_client import HttpTransport
from enhanced_fetch.models import Blob, ErrorDetail, ErrorType, FormData, HttpMethod, RequestConfig, ResponseType
from enhanced_fetch.parsing.response import ResponseClassifier
from enhanced_fetch.services.client import config_from_profile, fetch_enhanced

__version__ = "0.1.0"

__all__ = [
    "fetch_enhanced",
    "config_from_profile",
    "RequestExecutor",
    "RequestConfig",
    "ResponseClassifier",
    "HttpTransport",
    "CancellationToken",
    "HttpMethod",
    "ResponseType",
    "FormData",
    "Blob",
    "ErrorType",
    "ErrorDetail",
    "FetchError",
    "TransportError",
    "InvalidRequestError",
    "NetworkError",
    "CancellationError",
    "RequestTimeoutError",
    "StatusRejection",
    "ResponseDecodeError",
]
