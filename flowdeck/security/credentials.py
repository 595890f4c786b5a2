# flowdeck/security/credentials.py

from __future__ import annotations

import base64
import copy
import hashlib
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, Optional

import jwt
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from flowdeck.utils.logger import get_logger

logger = get_logger("security")

ENC_PREFIX = "$enc$"
JWT_ALGORITHM = "HS256"
PERMISSION_ACTIONS = ("view", "edit", "execute", "delete")


class CredentialStore:
    """In-memory credential records keyed by id. Holds encrypted data only."""

    def __init__(self):
        self._items: Dict[str, Dict[str, Any]] = {}

    def put(self, credential: Dict[str, Any]) -> None:
        self._items[credential["id"]] = credential

    def get(self, credential_id: str) -> Optional[Dict[str, Any]]:
        return self._items.get(credential_id)

    def __contains__(self, credential_id: object) -> bool:
        return credential_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)


class SecurityService:
    def __init__(
        self,
        encryption_key: Optional[str] = None,
        store: Optional[CredentialStore] = None,
        kdf_iterations: int = 100_000,
    ):
        self.encryption_key = encryption_key or os.environ.get("FLOWDECK_ENCRYPTION_KEY")
        if not self.encryption_key:
            raise ValueError("FLOWDECK_ENCRYPTION_KEY environment variable is not set")
        self.store = store if store is not None else CredentialStore()
        self.kdf_iterations = kdf_iterations
        self._signing_key = hashlib.sha256(self.encryption_key.encode()).hexdigest()

    # ---------- Encryption ----------

    def _get_fernet(self, salt: bytes) -> Fernet:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=self.kdf_iterations,
        )
        key = base64.urlsafe_b64encode(kdf.derive(self.encryption_key.encode()))
        return Fernet(key)

    def encrypt_data(self, data: Any) -> str:
        """JSON-encode and encrypt. Format: $enc$<salt>$<fernet token>."""
        salt = os.urandom(16)
        token = self._get_fernet(salt).encrypt(json.dumps(data).encode())
        salt_b64 = base64.urlsafe_b64encode(salt).decode()
        return f"{ENC_PREFIX}{salt_b64}${token.decode()}"

    def decrypt_data(self, encrypted: str) -> Any:
        if not isinstance(encrypted, str) or not encrypted.startswith(ENC_PREFIX):
            raise ValueError("Invalid encryption format")
        parts = encrypted.split("$")
        if len(parts) != 4:
            raise ValueError("Corrupted encryption string")
        try:
            salt = base64.urlsafe_b64decode(parts[2])
            plain = self._get_fernet(salt).decrypt(parts[3].encode())
            return json.loads(plain)
        except (ValueError, InvalidToken) as e:
            raise ValueError(f"Decryption failed: {e!s}") from e

    # ---------- Credentials ----------

    def store_credential(self, credential: Dict[str, Any]) -> str:
        secure = copy.deepcopy(credential)
        secure["data"] = {"encrypted": self.encrypt_data(credential.get("data") or {})}
        self.store.put(secure)
        logger.debug("stored credential %s (%s)", credential["id"], credential.get("type"))
        return credential["id"]

    def get_credential(self, credential_id: str) -> Optional[Dict[str, Any]]:
        stored = self.store.get(credential_id)
        if stored is None:
            return None
        out = copy.deepcopy(stored)
        out["data"] = self.decrypt_data(stored["data"]["encrypted"])
        return out

    @staticmethod
    def sanitize_workflow(workflow: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep copy of the workflow where node credentials keep only {id, name}
        references; entries of any other shape are dropped.
        """
        clean = copy.deepcopy(workflow)
        for node in clean.get("nodes") or []:
            if not isinstance(node, dict) or not node.get("credentials"):
                continue
            refs = {}
            for slot, cred in node["credentials"].items():
                if isinstance(cred, dict) and "id" in cred and "name" in cred:
                    refs[slot] = {"id": cred["id"], "name": cred["name"]}
            node["credentials"] = refs
        return clean

    # ---------- Access ----------

    def validate_permissions(self, user_id: str, workflow_id: str, action: str) -> bool:
        # No role model yet: every known action is allowed.
        if action not in PERMISSION_ACTIONS:
            raise ValueError(f"Unknown action '{action}'. Choose one of: {', '.join(PERMISSION_ACTIONS)}")
        return True

    def generate_api_key(self, workflow_id: str, expires_in_seconds: int = 3600) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "workflowId": workflow_id,
            "iat": now,
            "exp": now + timedelta(seconds=expires_in_seconds),
        }
        return jwt.encode(payload, self._signing_key, algorithm=JWT_ALGORITHM)

    def validate_api_key(self, api_key: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(api_key, self._signing_key, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError as e:
            logger.debug("api key rejected: %s", e)
            return {"valid": False}
        return {"valid": True, "workflowId": payload.get("workflowId")}
