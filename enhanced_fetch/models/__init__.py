from enhanced_fetch.models.common import ErrorType, ErrorDetail
from enhanced_fetch.models.request import HttpMethod, ResponseType, FormData, RequestConfig
from enhanced_fetch.models.response import Blob

__all__ = [
    "ErrorType",
    "ErrorDetail",
    "HttpMethod",
    "ResponseType",
    "FormData",
    "RequestConfig",
    "Blob"
]
