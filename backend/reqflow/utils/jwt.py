"""JWT Token Validation - Bearer tokens to actor context"""
import jwt
from pydantic import ValidationError as PydanticValidationError
from typing import Any, Dict, Optional

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger

logger = get_logger(__name__)


class JWTValidator:
    """Shared-secret JWT validator"""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        verify_signature: Optional[bool] = None
    ):
        self.secret = secret or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.verify_signature = (
            settings.verify_token_signature if verify_signature is None else verify_signature
        )

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a bearer token

        In DEVELOPMENT mode the signature is not checked so locally minted
        tokens work; expiry is still enforced.

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

        try:
            if not self.verify_signature:
                return jwt.decode(
                    token,
                    options={
                        "verify_signature": False,
                        "verify_exp": True,
                        "verify_aud": False,
                        "verify_iss": False,
                    }
                )

            options = {"verify_exp": True, "verify_aud": bool(settings.jwt_audience)}
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=settings.jwt_audience or None,
                issuer=settings.jwt_issuer or None,
                options=options,
            )

        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidAudienceError as e:
            logger.warning(f"Invalid token audience: {e}")
            raise AuthenticationError("Invalid token audience")
        except jwt.InvalidIssuerError:
            logger.warning("Invalid token issuer")
            raise AuthenticationError("Invalid token issuer")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_actor_context(self, token: str) -> ActorContext:
        """
        Extract actor context from validated token

        Args:
            token: Bearer token

        Returns:
            ActorContext with user information
        """
        claims = self.validate_token(token)

        user_id = claims.get("sub") or claims.get("oid")
        if not user_id:
            logger.warning(f"No subject in token claims. Available claims: {list(claims.keys())}")
            raise AuthenticationError("Unable to determine user from token")

        email = claims.get("email")
        if not email:
            # UPN-style usernames are not always addresses
            username = claims.get("preferred_username") or ""
            email = username if "@" in username else None
        display_name = claims.get("name") or email or user_id
        roles = claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]

        try:
            return ActorContext(
                user_id=str(user_id),
                email=email,
                display_name=display_name,
                roles=[str(role).upper() for role in roles]
            )
        except PydanticValidationError as e:
            logger.warning(f"Unusable token claims: {e}")
            raise AuthenticationError("Token claims are malformed")


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

    validator = get_jwt_validator()
    return validator.get_actor_context(authorization)
