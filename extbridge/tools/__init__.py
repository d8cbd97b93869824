"""Network tools"""

from .request import (
    Response,
    RequestClient,
    RequestError,
    buffer_to_string,
    fetch,
    get_request_client,
    request,
    reset_request_client,
)

__all__ = [
    'Response',
    'RequestClient',
    'RequestError',
    'buffer_to_string',
    'fetch',
    'get_request_client',
    'request',
    'reset_request_client',
]
