"""Bearer token verification (ES256 JWTs).

Users sign in with an upstream identity service; coursehub only verifies
the tokens it issues.  In production JWT_PUBLIC_KEY_PEM holds that
service's EC public key.  Without it (dev, tests) an ephemeral key pair is
generated on import and ``create_access_token`` can mint tokens locally.

Claims used here: sub (user UUID), roles, name.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from coursehub.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = "coursehub"
AUDIENCE = "coursehub-api"
ACCESS_TOKEN_TTL_MIN = 15


def _load_public_key(pem: str) -> ec.EllipticCurvePublicKey:
    key = serialization.load_pem_public_key(pem.encode())
    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise ValueError("JWT_PUBLIC_KEY_PEM must be an EC public key")
    return key


if SETTINGS.jwt_public_key_pem:
    _private_key: ec.EllipticCurvePrivateKey | None = None
    _public_key = _load_public_key(SETTINGS.jwt_public_key_pem)
else:
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    name: str = "",
) -> str:
    """Mint a token with the local dev key.  Unavailable once an external
    verification key is configured."""
    if _private_key is None:
        raise RuntimeError("tokens are issued by the identity service")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["student"],
        "name": name,
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature, issuer, audience and expiry; return the claims.

    The algorithm is pinned, so alg:none and alg-switching tokens fail.
    Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat"]},
    )
