"""
Authentication and role-based authorization for the FastAPI API.

Bearer tokens are issued by an external identity provider and carry the
caller's roles in a claim. This module only verifies them.
"""

from typing import Dict, FrozenSet, Iterable, Optional

import structlog
from authlib.jose import JoseError, JsonWebToken
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.config import config
from api.models import Principal, Role

logger = structlog.get_logger(__name__)

# Security scheme. Missing credentials raise 401 in get_current_principal.
security = HTTPBearer(auto_error=False)

READ_ROLES: FrozenSet[Role] = frozenset({Role.USER, Role.ADMIN})
ADMIN_ROLES: FrozenSet[Role] = frozenset({Role.ADMIN})

# Roles required per book operation
BOOK_ACCESS: Dict[str, FrozenSet[Role]] = {
    "list": READ_ROLES,
    "get": READ_ROLES,
    "create": READ_ROLES,
    "update": ADMIN_ROLES,
    "delete": ADMIN_ROLES,
}


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def parse_roles(value) -> FrozenSet[Role]:
    """
    Convert a roles claim into known roles.

    The claim may be a list or a whitespace/comma separated string. A
    ``ROLE_`` prefix is accepted. Unknown role names are ignored.
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = value.replace(",", " ").split()

    roles = set()
    for name in value:
        if not isinstance(name, str):
            continue
        name = name.strip().upper()
        if name.startswith("ROLE_"):
            name = name[len("ROLE_"):]
        if name in Role.__members__:
            roles.add(Role(name))
    return frozenset(roles)


def _claims_options() -> Optional[Dict]:
    options = {}
    if config.token_issuer:
        options["iss"] = {"essential": True, "value": config.token_issuer}
    if config.token_audience:
        options["aud"] = {"essential": True, "value": config.token_audience}
    return options or None


def verify_token(token: str) -> Principal:
    """
    Verify a bearer token and build the principal it describes.

    Args:
        token: Encoded JWT

    Returns:
        Principal with subject and granted roles

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no subject
    """
    jwt = JsonWebToken(config.allowed_algorithms)
    try:
        claims = jwt.decode(token, config.secret_key, claims_options=_claims_options())
        claims.validate()
    except (JoseError, ValueError) as exc:
        logger.warning("Rejected bearer token", error=str(exc))
        raise _unauthorized("Invalid authentication token") from exc

    subject = claims.get("sub")
    if not subject:
        logger.warning("Bearer token has no subject claim")
        raise _unauthorized("Token missing subject claim")

    return Principal(subject=str(subject), roles=parse_roles(claims.get(config.roles_claim)))


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Principal:
    """
    Authenticate the request from its Authorization header.

    Raises:
        HTTPException: 401 if no bearer token is present or it does not verify
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    return verify_token(credentials.credentials)


def require_roles(roles: Iterable[Role]):
    """Create a dependency that requires any of the given roles."""
    required = frozenset(roles)

    async def dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_any_role(required):
            logger.warning(
                "Access denied",
                subject=principal.subject,
                roles=sorted(role.value for role in principal.roles),
                required=sorted(role.value for role in required),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role for this operation",
            )
        return principal

    return dep


def authorize(operation: str):
    """Role guard for a named book operation."""
    return require_roles(BOOK_ACCESS[operation])
