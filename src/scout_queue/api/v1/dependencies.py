"""Shared API dependencies for sessions and voter identity."""

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from scout_queue.core.settings import settings
from scout_queue.db.session import get_db

logger = logging.getLogger(__name__)

# Bearer tokens are optional: anonymous clients identify by fingerprint.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_token_subject(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Return the ``sub`` claim of the bearer token, if one was sent.

    Args:
        credentials: HTTP Bearer token credentials, or None when absent

    Returns:
        The token subject, or None for anonymous requests

    Raises:
        HTTPException: If a token was sent but cannot be validated
    """
    if credentials is None:
        return None
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        logger.debug("Rejected bearer token: %s", err)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return str(subject)


TokenSubjectDep = Annotated[str | None, Depends(get_token_subject)]
FingerprintHeader = Annotated[str | None, Header(alias="x-fingerprint")]


def resolve_identity(
    subject: str | None,
    body_fingerprint: str | None = None,
    header_fingerprint: str | None = None,
) -> str | None:
    """Pick the identity for a request: token subject, then body, then header."""
    for candidate in (subject, body_fingerprint, header_fingerprint):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def get_request_identity(
    subject: TokenSubjectDep,
    x_fingerprint: FingerprintHeader = None,
) -> str | None:
    """Identity for requests without a JSON body."""
    return resolve_identity(subject, None, x_fingerprint)


IdentityDep = Annotated[str | None, Depends(get_request_identity)]
