"""Shared authentication dependencies for API endpoints.

Two kinds of bearer token are accepted. The service token (``API_AUTH_TOKEN``)
is held by internal schedulers and may only trigger sweeps. User tokens are
stored hashed in ``api_tokens`` and identify the user whose quota is read.
"""

import logging
import os
import secrets
import uuid as uuid_module

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.database.accounts import get_api_token
from src.database.connection import get_session

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_service_token() -> str:
    """Retrieve the service authentication token from environment.

    :returns: The configured service token.
    :raises ValueError: If API_AUTH_TOKEN is not set.
    """
    token = os.environ.get("API_AUTH_TOKEN")
    if not token:
        raise ValueError(
            "API authentication token not configured. Set API_AUTH_TOKEN environment variable."
        )
    return token


def _unauthorised(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _require_credentials(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or not credentials.credentials.strip():
        logger.warning("Request without bearer token")
        raise _unauthorised("Missing authentication token")
    return credentials.credentials


def _is_service_token(token: str) -> bool:
    try:
        expected_token = get_service_token()
    except ValueError as e:
        logger.error(f"API token configuration error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API authentication not configured",
        ) from e
    return secrets.compare_digest(token, expected_token)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(security),
) -> uuid_module.UUID:
    """Resolve the user behind a user bearer token.

    :param credentials: The HTTP Authorisation credentials.
    :returns: The authenticated user's ID.
    :raises HTTPException: 401 if the token is missing or unknown, 403 if it
        is inactive.
    """
    token = _require_credentials(credentials)

    with get_session() as session:
        record = get_api_token(session, token)
        if record is None:
            logger.warning("Unknown API token provided")
            raise _unauthorised("Invalid authentication token")
        if not record.is_active:
            logger.warning(f"Inactive API token used: user_id={record.user_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is inactive",
            )
        return record.user_id


def verify_service_token(
    credentials: HTTPAuthorizationCredentials | None = Security(security),
) -> str:
    """Verify that the request carries the service token.

    :param credentials: The HTTP Authorisation credentials.
    :returns: The validated token.
    :raises HTTPException: 401 if the token is missing or unknown, 403 if a
        user token is presented.
    """
    token = _require_credentials(credentials)

    if _is_service_token(token):
        return token

    with get_session() as session:
        record = get_api_token(session, token)

    if record is not None:
        logger.warning(f"User token used on a service endpoint: user_id={record.user_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service token required",
        )

    logger.warning("Invalid API token provided")
    raise _unauthorised("Invalid authentication token")
