"""
HTTP client for the Custos API.

Keeps the token pair and the VaultKey for one signed-in user. The master
secret is only used to derive credentials and is not retained; the vault key
is cleared on logout.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from custos_client.envelope import open_item, seal_item
from custos_client.errors import ApiError, KeyClearedError
from custos_client.kdf import DEFAULT_SECURITY_LEVEL, derive
from custos_client.keyring import VaultKey

logger = logging.getLogger(__name__)

DEFAULT_API_PREFIX = "/api/v1"


@dataclass
class LoginResult:
    requires_mfa: bool
    profile: dict[str, Any] = field(default_factory=dict)

    @property
    def signed_in(self) -> bool:
        return not self.requires_mfa


class VaultClient:
    """
    Usage::

        with VaultClient("https://vault.example.com") as client:
            client.login("me@example.com", "correct horse battery staple")
            client.add_item("login", {"site": "example.org", "password": "..."})
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        http: Optional[httpx.Client] = None,
        api_prefix: str = DEFAULT_API_PREFIX,
        timeout: float = 30.0,
    ):
        self._owns_http = http is None
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.api_prefix = api_prefix.rstrip("/")
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.profile: dict[str, Any] = {}
        self.vault_key: Optional[VaultKey] = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.api_prefix}{path}"

    def _send(self, method: str, path: str, *, auth: bool, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if auth and self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return self.http.request(method, self._url(path), headers=headers, **kwargs)

    def _request(self, method: str, path: str, *, auth: bool = True, retry: bool = True, **kwargs) -> Any:
        response = self._send(method, path, auth=auth, **kwargs)

        # An expired bearer gets one transparent refresh
        if response.status_code == 401 and auth and retry and self.refresh_token:
            self.refresh()
            response = self._send(method, path, auth=auth, **kwargs)

        if response.status_code >= 400:
            raise ApiError(response.status_code, _detail(response))
        return response.json()

    def _store_tokens(self, body: dict[str, Any]) -> None:
        self.access_token = body["accessToken"]
        self.refresh_token = body["refreshToken"]
        self.profile = body.get("profile") or {}

    def _require_key(self) -> VaultKey:
        if self.vault_key is None:
            raise KeyClearedError("Not signed in")
        return self.vault_key

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def get_security_level(self, email: str) -> str:
        body = self._request("GET", f"/auth/security-level/{email}", auth=False)
        return body["securityLevel"]

    def register(
        self,
        email: str,
        master_secret: str,
        display_name: Optional[str] = None,
        security_level: str = DEFAULT_SECURITY_LEVEL,
    ) -> dict[str, Any]:
        derived = derive(email, master_secret, security_level)
        body = self._request(
            "POST",
            "/auth/register",
            auth=False,
            json={
                "email": email,
                "authProof": derived.auth_proof,
                "displayName": display_name,
                "securityLevel": security_level,
            },
        )
        self._store_tokens(body)
        self._replace_key(derived.encryption_key)
        return self.profile

    def login(self, email: str, master_secret: str, mfa_code: Optional[str] = None) -> LoginResult:
        """
        Sign in. When the account has MFA on and no code was given, the
        result has ``requires_mfa`` set and nothing is kept; call again with
        the code.
        """
        level = self.get_security_level(email)
        derived = derive(email, master_secret, level)
        payload = {"email": email, "authProof": derived.auth_proof}
        if mfa_code:
            payload["mfaCode"] = mfa_code

        try:
            body = self._request("POST", "/auth/login", auth=False, json=payload)
        except ApiError:
            derived.encryption_key.clear()
            raise

        if body.get("requiresMfa"):
            derived.encryption_key.clear()
            return LoginResult(requires_mfa=True)

        self._store_tokens(body)
        self._replace_key(derived.encryption_key)
        return LoginResult(requires_mfa=False, profile=self.profile)

    def refresh(self) -> None:
        if not self.refresh_token:
            raise ApiError(400, "No refresh token")
        body = self._request(
            "POST", "/auth/refresh", auth=False, retry=False, json={"refreshToken": self.refresh_token}
        )
        self._store_tokens(body)

    def logout(self) -> None:
        """Revoke the session on the server and always drop local state."""
        try:
            if self.refresh_token or self.access_token:
                self._request(
                    "POST", "/auth/logout", retry=False, json={"refreshToken": self.refresh_token}
                )
        except (ApiError, httpx.HTTPError):
            logger.warning("Server-side logout failed, local session cleared anyway")
        finally:
            self._clear_session()

    def change_password(self, old_secret: str, new_secret: str) -> None:
        """
        Change the master secret. The server signs out every session,
        so the client is signed out too and must log in again.

        Items sealed with the old key are not re-encrypted here.
        """
        email = self.profile["email"]
        level = self.profile.get("securityLevel", DEFAULT_SECURITY_LEVEL)
        old = derive(email, old_secret, level)
        new = derive(email, new_secret, level)
        old.encryption_key.clear()
        new.encryption_key.clear()
        self._request(
            "POST",
            "/auth/change-password",
            json={"oldProof": old.auth_proof, "newProof": new.auth_proof},
        )
        self._clear_session()

    def me(self) -> dict[str, Any]:
        self.profile = self._request("GET", "/auth/me")
        return self.profile

    # ------------------------------------------------------------------
    # Vault envelopes
    # ------------------------------------------------------------------

    def add_item(self, item_type: str, payload: Any) -> dict[str, Any]:
        body = seal_item(item_type, payload, self._require_key())
        return self._request("POST", "/vault/items", json=body)

    def list_items(self, item_type: Optional[str] = None) -> list[dict[str, Any]]:
        """Fetch and open every item; each result has id, itemType and payload."""
        key = self._require_key()
        params = {"itemType": item_type} if item_type else None
        items = self._request("GET", "/vault/items", params=params)
        return [
            {"id": item["id"], "itemType": item["itemType"], "payload": open_item(item, key)}
            for item in items
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _replace_key(self, key: VaultKey) -> None:
        if self.vault_key is not None:
            self.vault_key.clear()
        self.vault_key = key

    def _clear_session(self) -> None:
        if self.vault_key is not None:
            self.vault_key.clear()
        self.vault_key = None
        self.access_token = None
        self.refresh_token = None
        self.profile = {}

    def close(self) -> None:
        self._clear_session()
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "VaultClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    detail = body.get("detail") if isinstance(body, dict) else body
    return detail if isinstance(detail, str) else str(detail)
