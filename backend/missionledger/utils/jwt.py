"""JWT Token Validation for session tokens issued by the auth collaborator"""
import jwt
from typing import Any, Dict, Optional
from datetime import timedelta

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger
from .time import utc_now

logger = get_logger(__name__)


class JWTValidator:
    """HS256 session token validator"""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a bearer token

        Args:
            token: Bearer token (with or without 'Bearer ' prefix)

        Returns:
            Decoded token claims

        Raises:
            AuthenticationError: If token is invalid
        """
        if not token:
            raise AuthenticationError("Token is missing")

        if token.startswith("Bearer "):
            token = token[7:]

        options = {"verify_exp": True, "verify_aud": bool(settings.jwt_audience)}
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=settings.jwt_audience or None,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidAudienceError as e:
            logger.warning(f"Invalid token audience: {e}")
            raise AuthenticationError("Invalid token audience")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_actor_context(self, token: str) -> ActorContext:
        """
        Extract actor context from validated token

        The ``sub`` claim is the actor id, ``role`` the single role and
        ``name`` the display name (falls back to the actor id).
        """
        claims = self.validate_token(token)

        actor_id = claims.get("sub")
        role = claims.get("role")
        if not actor_id or not role:
            logger.warning(f"Token missing identity claims. Available claims: {list(claims.keys())}")
            raise AuthenticationError("Token must carry 'sub' and 'role' claims")

        return ActorContext(
            actor_id=str(actor_id),
            display_name=claims.get("name") or str(actor_id),
            role=str(role),
        )

    def encode_token(
        self,
        actor_id: str,
        role: str,
        display_name: Optional[str] = None,
        expires_in: timedelta = timedelta(hours=8)
    ) -> str:
        """Mint a token the way the auth collaborator does (local development and tests)"""
        claims: Dict[str, Any] = {
            "sub": actor_id,
            "role": role,
            "name": display_name or actor_id,
            "exp": utc_now() + expires_in,
        }
        if settings.jwt_audience:
            claims["aud"] = settings.jwt_audience
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)


# Global validator instance
_jwt_validator: Optional[JWTValidator] = None


def get_jwt_validator() -> JWTValidator:
    """Get global JWT validator instance"""
    global _jwt_validator
    if _jwt_validator is None:
        _jwt_validator = JWTValidator()
    return _jwt_validator


def get_current_user(authorization: str) -> ActorContext:
    """
    Get current user from authorization header

    Args:
        authorization: Authorization header value

    Returns:
        ActorContext
    """
    if not authorization:
        raise AuthenticationError("Authorization header is missing")

    return get_jwt_validator().get_actor_context(authorization)
