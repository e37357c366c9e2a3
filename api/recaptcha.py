import logging
import os
from dataclasses import dataclass
from typing import Optional

import requests

from .constants import RECAPTCHA_MIN_SCORE, RECAPTCHA_VERIFY_URL

logger = logging.getLogger("api")


@dataclass
class RecaptchaResult:
    success: bool
    score: Optional[float] = None
    error: Optional[str] = None


def verify_recaptcha(token: str) -> RecaptchaResult:
    """
    Verify a reCAPTCHA v3 token with Google.

    Fails open: a missing secret or an unreachable verification endpoint
    counts as success so sign-up is never blocked by an outage.
    """
    secret_key = os.environ.get("RECAPTCHA_SECRET_KEY")
    if not secret_key:
        logger.error("[RECAPTCHA] Secret key is not configured")
        return RecaptchaResult(success=True)

    try:
        response = requests.post(
            RECAPTCHA_VERIFY_URL,
            data={"secret": secret_key, "response": token},
            timeout=10,
        )
        data = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error(f"[RECAPTCHA] Verification error: {e}")
        return RecaptchaResult(success=True)

    if not data.get("success"):
        codes = data.get("error-codes") or []
        return RecaptchaResult(
            success=False,
            error=", ".join(codes) or "reCAPTCHA verification failed",
        )

    score = data.get("score")
    if score is None:
        score = 1

    if score < RECAPTCHA_MIN_SCORE:
        return RecaptchaResult(
            success=False,
            score=score,
            error="Low reCAPTCHA score. Please try again.",
        )

    return RecaptchaResult(success=True, score=score)
