"""
JSON line logging for the API and the audit trail.

Application forms carry applicant identifiers (tax id, bank details) and
vendor invites carry temporary passwords, so both log messages and audit
details pass through redaction before they are written. Keys are compared
case and separator insensitively: ``taxId``, ``tax_id`` and ``TAX-ID`` match
the same entry.
"""
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Optional

REDACTED = "***REDACTED***"

# Normalised (lowercase letters only) field names never written to logs
_REDACTED_FIELDS = frozenset({
    "password",
    "temppassword",
    "secret",
    "webhooksecret",
    "apikey",
    "token",
    "accesstoken",
    "authorization",
    "stripesignature",
    "taxid",
    "ssn",
    "bankaccount",
    "accountnumber",
    "routingnumber",
})

# key=value / "key": "value" pairs inside free text
_FIELD_IN_TEXT = re.compile(
    r'(password|temp_?password|secret|token|authorization|stripe-signature|tax_?id)'
    r'[\"\']?\s*[:=]\s*[\"\']?[^\s,;\"\'}{]+',
    re.IGNORECASE,
)

# Stripe secret keys and webhook secrets, wherever they appear
_STRIPE_SECRET = re.compile(r"\b(?:sk|rk)_(?:live|test)_[A-Za-z0-9]+|\bwhsec_[A-Za-z0-9]+")

_CONTEXT_FIELDS = ("user_id", "broker_id", "action", "entity_type", "entity_id", "details")


def _normalise_key(key: Any) -> str:
    return re.sub(r"[^a-z]", "", str(key).lower())


def scrub(obj: Any) -> Any:
    """Copy of ``obj`` with sensitive values replaced, recursing into dicts and lists."""
    if isinstance(obj, dict):
        return {
            k: REDACTED if _normalise_key(k) in _REDACTED_FIELDS else scrub(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return [scrub(i) for i in obj]
    return obj


def scrub_text(message: str) -> str:
    message = _FIELD_IN_TEXT.sub(rf"\1={REDACTED}", message)
    return _STRIPE_SECRET.sub(REDACTED, message)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line; request and audit context copied from ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": scrub_text(record.getMessage()),
        }
        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = scrub(value)
        if record.exc_info:
            entry["exception"] = scrub_text(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    root.setLevel(logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO))
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class AuditLogger:
    """
    Records who changed what: deal creation, stage moves, deletions, vendor
    invites and removals, billing updates. Entries go to the ``audit`` logger
    with the broker as tenant key, so one broker's trail can be filtered out
    of the shared stream.
    """

    def __init__(self, name: str = "audit"):
        self.logger = get_logger(name)

    def log(
        self,
        action: str,
        user_id: Optional[str] = None,
        broker_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        target = f"{entity_type}:{entity_id}" if entity_type and entity_id else entity_type or "-"
        self.logger.info(
            "%s %s by %s",
            action,
            target,
            user_id or "system",
            extra={
                "user_id": user_id,
                "broker_id": broker_id,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "details": scrub(details) if details else None,
            },
        )


audit_logger = AuditLogger()
