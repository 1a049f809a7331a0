"""
Mint a bearer token for local development, signed with JWT_SECRET.
Usage: python -m scripts.dev_token demo-broker [email]
"""
import os
import sys
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jose import jwt

from config import settings


def make_token(user_id: str, email: str | None = None, hours: int = 12) -> str:
    now = datetime.now(timezone.utc)
    claims = {"sub": user_id, "iat": now, "exp": now + timedelta(hours=hours)}
    if email:
        claims["email"] = email
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    print(make_token(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None))
