from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_AUTH_URL = "https://auth.europe-west1.gcp.commercetools.com"
DEFAULT_API_URL = "https://api.europe-west1.gcp.commercetools.com"
DEFAULT_CREDENTIALS_FILE = "~/.commercetools-project-credentials"


class MissingProjectKeyError(ValueError):
    pass


def load_dotenv(dotenv_path: str = ".env") -> None:
    """
    Minimal .env loader.
    Lines like KEY=VALUE. Ignores comments and empty lines.
    Does NOT overwrite existing environment variables.
    """
    p = Path(dotenv_path)
    if not p.exists():
        return

    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        k, v = line.split("=", 1)
        k = k.strip()
        v = v.strip().strip('"').strip("'")
        if k and k not in os.environ:
            os.environ[k] = v


@dataclass(frozen=True)
class ClientCredentials:
    project_key: str
    client_id: str
    client_secret: str


def _read_credentials_file(path: Path, project_key: str) -> Optional[ClientCredentials]:
    # one "project_key:client_id:client_secret" per line
    if not path.exists():
        return None
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(":")
        if len(parts) != 3:
            continue
        key, client_id, client_secret = (p.strip() for p in parts)
        if key == project_key and client_id and client_secret:
            return ClientCredentials(project_key=key, client_id=client_id, client_secret=client_secret)
    return None


def get_client_credentials(
    project_key: Optional[str],
    credentials_file: str = DEFAULT_CREDENTIALS_FILE,
) -> ClientCredentials:
    if not project_key:
        raise MissingProjectKeyError("Project Key is needed")

    client_id = os.getenv("CTP_CLIENT_ID", "").strip()
    client_secret = os.getenv("CTP_CLIENT_SECRET", "").strip()
    if client_id and client_secret:
        return ClientCredentials(project_key=project_key, client_id=client_id, client_secret=client_secret)

    found = _read_credentials_file(Path(credentials_file).expanduser(), project_key)
    if found is not None:
        return found

    raise RuntimeError(
        f"Missing credentials for project '{project_key}': set CTP_CLIENT_ID / CTP_CLIENT_SECRET "
        f"in environment / .env or add a line to {credentials_file}"
    )


@dataclass(frozen=True)
class Settings:
    project_key: str
    client_id: str
    client_secret: str
    auth_url: str = DEFAULT_AUTH_URL
    api_url: str = DEFAULT_API_URL
    scope: str = ""
    user_agent: str = "product-type-export/1.0"

    @property
    def token_scope(self) -> str:
        return self.scope or f"view_products:{self.project_key}"

    @staticmethod
    def from_env(project_key: Optional[str] = None, dotenv_path: Optional[str] = ".env") -> "Settings":
        if dotenv_path:
            load_dotenv(dotenv_path)

        project_key = (project_key or os.getenv("CTP_PROJECT_KEY", "")).strip()
        creds = get_client_credentials(
            project_key,
            credentials_file=os.getenv("CTP_CREDENTIALS_FILE", DEFAULT_CREDENTIALS_FILE),
        )

        return Settings(
            project_key=creds.project_key,
            client_id=creds.client_id,
            client_secret=creds.client_secret,
            auth_url=os.getenv("CTP_AUTH_URL", DEFAULT_AUTH_URL).strip().rstrip("/"),
            api_url=os.getenv("CTP_API_URL", DEFAULT_API_URL).strip().rstrip("/"),
            scope=os.getenv("CTP_SCOPES", "").strip(),
            user_agent=os.getenv("CTP_USER_AGENT", "product-type-export/1.0").strip(),
        )
