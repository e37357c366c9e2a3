"""
Bearer token authentication against Firebase Authentication.

Clients send `Authorization: Bearer <Firebase ID token>`; the token is
verified with the Admin SDK and views receive the decoded uid and email.
"""
import logging
from typing import Optional, Dict, Any, Tuple

from django.http import JsonResponse

from .firebase_service import get_firebase_app
from .http import auth_required_response

logger = logging.getLogger("api")


def bearer_token(request) -> Optional[str]:
    header = request.META.get("HTTP_AUTHORIZATION", "")
    if not header:
        return None
    if header.startswith("Bearer "):
        header = header[len("Bearer "):]
    token = header.strip()
    return token or None


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Decoded token claims, or None if the token is invalid or Firebase is not configured."""
    app = get_firebase_app()
    if app is None:
        logger.warning("[AUTH] Firebase not configured, rejecting token")
        return None

    try:
        from firebase_admin import auth as fb_auth
        claims = fb_auth.verify_id_token(token, app=app)
    except Exception as e:
        logger.warning(f"[AUTH] Token verification failed: {e}")
        return None

    return {
        "uid": claims.get("uid") or claims.get("sub"),
        "email": claims.get("email"),
    }


def authenticate(request) -> Tuple[Optional[Dict[str, Any]], Optional[JsonResponse]]:
    """(user, None) for a valid bearer token, otherwise (None, 401 response)."""
    token = bearer_token(request)
    if not token:
        logger.warning(f"[AUTH] No authorization header for {request.path}")
        return None, auth_required_response()

    user = verify_token(token)
    if not user or not user.get("uid"):
        return None, auth_required_response()

    return user, None
