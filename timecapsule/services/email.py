from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol
from urllib.parse import quote
import json
import time

import requests
from flask import current_app, render_template
from flask_mail import Message

from timecapsule.extensions import mail
from timecapsule.errors import TransportFailure
from timecapsule.models.capsule import Capsule
from . import clock
from .markup import render_markdown

PRODUCT_NAME = "Time Capsule"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


class Transport(Protocol):
    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> str:
        """Hand one message to the provider; return its message id or raise TransportFailure."""


def status_url(capsule_id: str) -> Optional[str]:
    base = (current_app.config.get("APP_BASE_URL") or "").rstrip("/")
    if not base:
        return None
    return f"{base}/status/{quote(capsule_id)}"


def render_capsule_email(capsule: Capsule) -> RenderedEmail:
    ctx = {
        "product_name": PRODUCT_NAME,
        "capsule_id": capsule.id,
        "content": capsule.content,
        "body_html": render_markdown(capsule.content),
        "signer": capsule.signer,
        "contact": capsule.contact,
        "send_at_civil": clock.civil_datetime(capsule.send_at),
        "created_at_civil": clock.civil_datetime(capsule.created_at),
        "status_url": status_url(capsule.id),
        "year": datetime.now(timezone.utc).year,
    }
    return RenderedEmail(
        subject=current_app.config.get("EMAIL_SUBJECT", "Your time capsule has arrived"),
        html=render_template("email/capsule.html", **ctx),
        text=render_template("email/capsule.txt", **ctx),
    )


class ResendTransport:
    """POST {from, to, subject, html} with bearer auth; the JSON reply carries the message id."""

    def __init__(self, api_key: str, sender: str, url: str, timeout: float = 20):
        self.api_key = api_key
        self.sender = sender
        self.url = url
        # connect, read
        self.timeout = (min(5, timeout), timeout)

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> str:
        if not self.api_key:
            raise TransportFailure("RESEND_API_KEY is not configured")
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        payload = {"from": self.sender, "to": to, "subject": subject, "html": html}
        try:
            r = requests.post(self.url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportFailure(f"Resend request error: {e}") from e
        if not r.ok:
            raise TransportFailure(f"Resend {r.status_code}: {r.text}")
        try:
            body = r.json()
        except ValueError:
            body = {}
        return str((body or {}).get("id") or "")


class SmtpTransport:
    """Flask-Mail delivery; the generated Message-ID stands in for a provider id."""

    def __init__(self, sender: str):
        self.sender = sender

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> str:
        msg = Message(subject=subject, recipients=[to], sender=self.sender)
        msg.html = html
        msg.body = text
        try:
            mail.send(msg)
        except Exception as e:
            # smtplib/socket errors have no common base worth narrowing to
            raise TransportFailure(f"SMTP error: {e}") from e
        return (msg.msgId or "").strip("<>")


def get_transport() -> Transport:
    cfg = current_app.config
    kind = (cfg.get("EMAIL_TRANSPORT") or "resend").lower()
    if kind == "smtp":
        return SmtpTransport(sender=cfg["FROM_EMAIL"])
    if kind == "resend":
        return ResendTransport(
            api_key=cfg.get("RESEND_API_KEY", ""),
            sender=cfg["FROM_EMAIL"],
            url=cfg.get("RESEND_API_URL", "https://api.resend.com/emails"),
            timeout=float(cfg.get("EMAIL_TIMEOUT_SECONDS", 20)),
        )
    raise RuntimeError(f"Unknown EMAIL_TRANSPORT {kind!r}")


def send_capsule(capsule: Capsule, transport: Transport) -> str:
    """Render and hand one capsule to the transport, logging latency like other mail sends."""
    rendered = render_capsule_email(capsule)
    start = time.perf_counter()
    try:
        provider_id = transport.send(capsule.email, rendered.subject, rendered.html, rendered.text)
    except TransportFailure as ex:
        current_app.logger.warning(json.dumps({
            "event": "mail_send",
            "capsule_id": capsule.id,
            "outcome": "transport_error",
            "latency_ms": int((time.perf_counter() - start) * 1000),
            "error": ex.message[:500],
        }))
        raise
    current_app.logger.info(json.dumps({
        "event": "mail_send",
        "capsule_id": capsule.id,
        "outcome": "sent",
        "provider_msg_id": provider_id,
        "latency_ms": int((time.perf_counter() - start) * 1000),
    }))
    return provider_id
