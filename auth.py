"""
Bearer-token authentication

Tokens resolve to the caller's email. With FB_SERVICE_KEY configured the
Firebase Admin SDK verifies ID tokens; otherwise tokens are HS256 JWTs signed
with JWT_SECRET (see `create_jwt`).
"""

import base64
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import firebase_admin
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin.exceptions import FirebaseError
from jose import JWTError, jwt

import config

logger = logging.getLogger(__name__)

UNAUTHORIZED = "Unauthorized Access!"


class TokenError(Exception):
    pass


class FirebaseTokenVerifier:
    def __init__(self, service_key_b64: str):
        info = json.loads(base64.b64decode(service_key_b64).decode("utf-8"))
        try:
            self.app = firebase_admin.get_app()
        except ValueError:
            self.app = firebase_admin.initialize_app(credentials.Certificate(info))

    def verify(self, token: str) -> str:
        try:
            decoded = firebase_auth.verify_id_token(token, app=self.app)
        except (ValueError, FirebaseError) as e:
            raise TokenError(str(e))
        email = decoded.get("email")
        if not email:
            raise TokenError("token has no email claim")
        return email


class JwtTokenVerifier:
    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> str:
        try:
            data = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            raise TokenError(str(e))
        email = data.get("email")
        if not email:
            raise TokenError("token has no email claim")
        return email


_verifier = None


def get_verifier():
    global _verifier
    if _verifier is None:
        if config.FB_SERVICE_KEY:
            _verifier = FirebaseTokenVerifier(config.FB_SERVICE_KEY)
        else:
            _verifier = JwtTokenVerifier(config.JWT_SECRET, config.JWT_ALG)
    return _verifier


def create_jwt(payload: Dict[str, Any]) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=config.TOKEN_EXPIRE_MIN)
    to_encode = {"exp": exp, "iat": now, **payload}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALG)


bearer_scheme = HTTPBearer(auto_error=False)


def get_token_email(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> str:
    if not creds or not creds.credentials:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED)
    try:
        return get_verifier().verify(creds.credentials)
    except TokenError as e:
        logger.warning("Rejected bearer token: %s", e)
        raise HTTPException(status_code=401, detail=UNAUTHORIZED)
