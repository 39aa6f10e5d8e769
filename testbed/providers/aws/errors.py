"""Translation of boto errors into provider errors."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from botocore.exceptions import (
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
)

from testbed.providers.aws.utils import get_aws_credentials_error_message
from testbed.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
)

logger = logging.getLogger(__name__)

CREDENTIAL_ERROR_CODES = frozenset(
    (
        "AuthFailure",
        "ExpiredToken",
        "InvalidClientTokenId",
        "UnrecognizedClientException",
    )
)


@contextmanager
def handle_aws_errors() -> Iterator[None]:
    """Re-raise boto errors from the wrapped block as provider errors.

    Raises
    ------
    ProviderCredentialsError
        If credentials are missing or rejected
    ProviderConnectionError
        If the EC2 endpoint is unreachable
    ProviderAPIError
        For any other API error, carrying the AWS error code
    """
    try:
        yield
    except (NoCredentialsError, PartialCredentialsError) as e:
        raise ProviderCredentialsError(get_aws_credentials_error_message()) from e
    except EndpointConnectionError as e:
        raise ProviderConnectionError(str(e)) from e
    except ClientError as e:
        error = e.response.get("Error", {})
        code = error.get("Code", "")
        operation = e.operation_name

        if code in CREDENTIAL_ERROR_CODES:
            raise ProviderCredentialsError(get_aws_credentials_error_message()) from e

        logger.debug("AWS %s failed with %s: %s", operation, code, error.get("Message"))
        raise ProviderAPIError(
            message=error.get("Message", str(e)),
            error_code=code or None,
            operation=operation,
        ) from e
