# siggen/config.py

import copy
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import keyring
from appdirs import user_data_dir
from keyring.errors import KeyringError

from siggen.models import PipelineConfig
from siggen.utils import atomic_write_text


logger = logging.getLogger(__name__)

APP_NAME = "Signature Generator"
APP_AUTHOR = "SignatureGenerator"

# Settings schema version for future compatibility
SCHEMA_VERSION = 1

SETTINGS_ENV = "SIGGEN_SETTINGS_FILE"
PASSWORD_ENV = "SIGGEN_SMTP_PASSWORD"
KEYRING_SERVICE = f"{APP_NAME}-smtp"

DEFAULT_SUBJECT = "Your new email signature"
DEFAULT_BODY = "Hi,\n\nyour personal email signature is attached. Open it in a browser and copy it into your mail client."
DEFAULT_SMTP_PORT = 587

LOG_FORMAT = "%(levelname)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Route engine logging to stderr. stdout stays free for CLI output."""
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)


def settings_file() -> Path:
    """Platform data directory, unless SIGGEN_SETTINGS_FILE points elsewhere."""
    override = os.environ.get(SETTINGS_ENV)
    if override:
        return Path(override).expanduser()
    return Path(user_data_dir(APP_NAME, APP_AUTHOR)) / "siggen_settings.json"


# =========================
# Settings
# =========================

def default_settings() -> Dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "template_path": "",
        "table_path": "",
        "output_dir": "",
        "pipeline": PipelineConfig().to_dict(),
        "delivery_mode": "email",          # "email" or "zip"
        "subject": DEFAULT_SUBJECT,
        "body": DEFAULT_BODY,
        "attach_extra": False,
        "extra_attachment_path": "",
        "smtp": {
            "host": "",
            "port": DEFAULT_SMTP_PORT,
            "use_ssl": False,
            "username": "",
            "sender": "",
        },
    }


def _merge_defaults(data: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(defaults)
    for key, value in (data or {}).items():
        if isinstance(out.get(key), dict) and isinstance(value, dict):
            out[key] = _merge_defaults(value, out[key])
        else:
            out[key] = value
    return out


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load settings from disk.

    A missing or corrupt file yields the defaults; missing keys are filled in.
    """
    p = Path(path) if path else settings_file()
    if not p.exists():
        return default_settings()

    try:
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", p, e)
        return default_settings()

    if not isinstance(data, dict):
        return default_settings()

    # passwords never live in the settings file
    if isinstance(data.get("smtp"), dict):
        data["smtp"].pop("password", None)

    merged = _merge_defaults(data, default_settings())
    merged["schema_version"] = SCHEMA_VERSION
    return merged


def save_settings(data: Dict[str, Any], path: Optional[Path] = None) -> Path:
    p = Path(path) if path else settings_file()
    clean = copy.deepcopy(data)
    if isinstance(clean.get("smtp"), dict):
        clean["smtp"].pop("password", None)
    clean["schema_version"] = SCHEMA_VERSION
    return atomic_write_text(p, json.dumps(clean, indent=2, ensure_ascii=False))


def pipeline_config(settings: Dict[str, Any]) -> PipelineConfig:
    return PipelineConfig.from_dict(settings.get("pipeline") or {})


# =========================
# SMTP
# =========================

@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int = DEFAULT_SMTP_PORT
    use_ssl: bool = False          # True: implicit TLS, False: STARTTLS
    username: str = ""
    password: str = ""
    sender: str = ""
    timeout: float = 30.0

    @property
    def from_address(self) -> str:
        return (self.sender or self.username).strip()

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], password: Optional[str] = None) -> "SmtpSettings":
        smtp = settings.get("smtp") or {}
        username = str(smtp.get("username") or "").strip()
        if password is None:
            password = get_smtp_password(username)
        return cls(
            host=str(smtp.get("host") or "").strip(),
            port=int(smtp.get("port") or DEFAULT_SMTP_PORT),
            use_ssl=bool(smtp.get("use_ssl")),
            username=username,
            password=password or "",
            sender=str(smtp.get("sender") or "").strip(),
        )


def get_smtp_password(username: str) -> str:
    """SIGGEN_SMTP_PASSWORD, else the system keyring, else ""."""
    env = os.environ.get(PASSWORD_ENV)
    if env:
        return env
    if not username:
        return ""
    try:
        return keyring.get_password(KEYRING_SERVICE, username) or ""
    except KeyringError as e:
        logger.warning("Keyring unavailable, no stored SMTP password: %s", e)
        return ""


def set_smtp_password(username: str, password: str) -> bool:
    if not username:
        return False
    try:
        if password:
            keyring.set_password(KEYRING_SERVICE, username, password)
        else:
            keyring.delete_password(KEYRING_SERVICE, username)
        return True
    except KeyringError as e:
        logger.warning("Could not store SMTP password in keyring: %s", e)
        return False
