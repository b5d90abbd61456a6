"""
Authentication guards.

require_user   - bearer token verified against Firebase Auth
require_admin  - require_user plus the configured administrator email
require_basic_admin - HTTP Basic against the operator panel credentials
"""

import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import firebase_admin
from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials

from config import Settings
from errors import AuthenticationError, AuthorizationError, ConfigurationError

logger = logging.getLogger(__name__)

BASIC_REALM = 'Basic realm="Admin Panel"'


@dataclass(frozen=True)
class Principal:
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens; the Firebase app is initialised on first use."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._app = None
        self._lock = threading.Lock()

    def _firebase_app(self):
        with self._lock:
            if self._app is None:
                s = self.settings
                if not (s.firebase_project_id and s.firebase_client_email and s.firebase_private_key):
                    raise ConfigurationError(
                        "Firebase Admin SDK is not configured. Set FIREBASE_PROJECT_ID, "
                        "FIREBASE_CLIENT_EMAIL and FIREBASE_PRIVATE_KEY."
                    )
                cred = credentials.Certificate({
                    "type": "service_account",
                    "project_id": s.firebase_project_id,
                    "client_email": s.firebase_client_email,
                    "private_key": s.firebase_private_key,
                    "token_uri": "https://oauth2.googleapis.com/token",
                })
                self._app = firebase_admin.initialize_app(
                    cred, {"projectId": s.firebase_project_id}, name="krishisahay"
                )
            return self._app

    def verify(self, token: str) -> Dict[str, Any]:
        return firebase_auth.verify_id_token(token, app=self._firebase_app())


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_user(request: Request) -> Principal:
    token = _bearer_token(request)
    if not token:
        raise AuthenticationError("No token provided")

    verifier = request.app.state.verifier
    try:
        claims = verifier.verify(token)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.warning("Token verification error: %s", e)
        raise AuthenticationError("Invalid token") from e

    uid = claims.get("uid") or claims.get("sub")
    if not uid:
        raise AuthenticationError("Invalid token")
    return Principal(uid=uid, email=claims.get("email"), name=claims.get("name"))


def require_admin(request: Request, user: Principal = Depends(require_user)) -> Principal:
    admin_email = request.app.state.settings.admin_email
    if not admin_email:
        raise ConfigurationError("Admin email not configured")
    if not user.email or user.email != admin_email:
        raise AuthorizationError("Admin access required")
    return user


_basic = HTTPBasic(auto_error=False)


def require_basic_admin(
    request: Request, creds: Optional[HTTPBasicCredentials] = Depends(_basic)
) -> str:
    settings = request.app.state.settings
    if not settings.admin_panel_user or not settings.admin_panel_pass:
        raise ConfigurationError(
            "Admin panel is not configured. Set ADMIN_PANEL_USER and ADMIN_PANEL_PASS."
        )
    if creds is None:
        raise AuthenticationError("Authentication required", headers={"WWW-Authenticate": BASIC_REALM})

    user_ok = secrets.compare_digest(creds.username.encode(), settings.admin_panel_user.encode())
    pass_ok = secrets.compare_digest(creds.password.encode(), settings.admin_panel_pass.encode())
    if not (user_ok and pass_ok):
        raise AuthenticationError("Invalid credentials", headers={"WWW-Authenticate": BASIC_REALM})
    return creds.username
