"""
Billing: Lemon Squeezy API calls and the subscription webhook reconciler.

The reconciler keeps ``Profile.is_premium`` in step with the billing
provider. Every recognised event overwrites the flag and the stored
customer/subscription ids, so delivering the same event twice leaves the
same state as delivering it once. Events are not ordered; the last one
processed wins.
"""

import hashlib
import hmac
import json
from typing import Dict, Optional, Tuple

import requests
from flask import current_app
from pydantic import ValidationError as SchemaError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from errors import (
    AuthenticationError,
    ConfigurationError,
    NotFoundError,
    PersistenceError,
    UpstreamServiceError,
    ValidationError,
    upstream_error_from_response,
)
from extensions import db
from models import Profile
from schemas import WebhookEvent

EVENT_CREATED = "subscription_created"
EVENT_UPDATED = "subscription_updated"
EVENT_PAYMENT_SUCCESS = "subscription_payment_success"
EVENT_CANCELLED = "subscription_cancelled"
RECOGNIZED_EVENTS = (EVENT_CREATED, EVENT_UPDATED, EVENT_PAYMENT_SUCCESS, EVENT_CANCELLED)

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(secret: Optional[str], raw_body: bytes, header_value: Optional[str]) -> bool:
    """Check a hex HMAC-SHA256 signature of the raw request body.

    The comparison ignores case and an optional ``sha256=`` prefix. A
    missing secret is a configuration error: unsigned webhooks are never
    accepted.
    """
    if not secret:
        raise ConfigurationError("Webhook secret not configured")
    if not header_value:
        return False
    received = header_value.strip().lower()
    if received.startswith(SIGNATURE_PREFIX):
        received = received[len(SIGNATURE_PREFIX):]
    return hmac.compare_digest(received, compute_signature(secret, raw_body))


def parse_event(raw_body: bytes) -> WebhookEvent:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise ValidationError("Webhook body is not valid JSON")
    try:
        return WebhookEvent.model_validate(payload)
    except SchemaError as e:
        raise ValidationError("Malformed webhook payload", details=e.errors(include_url=False, include_context=False))


def is_premium_for(event: WebhookEvent) -> bool:
    return event.meta.event_name != EVENT_CANCELLED and event.data.attributes.status == "active"


def _resolve_profile(event: WebhookEvent) -> Optional[Profile]:
    """Embedded user id first, then the billing email.

    An embedded id that matches no profile is reported as not found; a
    payload we cannot map to anybody returns None.
    """
    user_id = event.embedded_user_id
    if user_id:
        profile = db.session.get(Profile, int(user_id)) if user_id.isdigit() else None
        if profile is None:
            raise NotFoundError("Profile not found", details={"user_id": user_id})
        return profile

    email = (event.data.attributes.user_email or "").strip()
    if not email:
        return None
    current_app.logger.info("Webhook without user_id; looking up profile by email %s", email)
    return Profile.query.filter(func.lower(Profile.email) == email.lower()).first()


def reconcile_event(event: WebhookEvent) -> Tuple[Dict, int]:
    log = current_app.logger
    name = event.meta.event_name
    if name not in RECOGNIZED_EVENTS:
        log.info("Ignoring webhook event %s", name)
        return {"message": "Event not processed"}, 200

    profile = _resolve_profile(event)
    if profile is None:
        # acknowledged so the provider does not keep retrying
        log.warning(
            "Webhook %s for subscription %s could not be matched to a profile: %s",
            name, event.data.id, event.model_dump_json(),
        )
        return {"message": "No user_id found, skipping update"}, 200

    premium = is_premium_for(event)
    customer_id = event.data.attributes.customer_id
    subscription_id = event.data.id

    profile.is_premium = premium
    if customer_id:
        profile.billing_customer_id = customer_id
    if subscription_id:
        profile.billing_subscription_id = subscription_id
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        log.exception("Updating premium status for user %s failed", profile.id)
        raise PersistenceError("Failed to update premium status", details=str(e.__class__.__name__))

    log.info("Updated user %s premium status to %s (event: %s)", profile.id, premium, name)
    return {
        "success": True,
        "message": f"Premium status updated for user {profile.id}",
        "is_premium": premium,
    }, 200


def handle_webhook(raw_body: bytes, signature: Optional[str], secret: Optional[str]) -> Tuple[Dict, int]:
    if not verify_signature(secret, raw_body, signature):
        current_app.logger.error("Invalid webhook signature - request rejected")
        raise AuthenticationError("Invalid signature")
    return reconcile_event(parse_event(raw_body))


class LemonSqueezyClient:
    """Minimal client for the Lemon Squeezy JSON:API endpoints we use."""

    def __init__(self, api_key, store_id=None, base_url="https://api.lemonsqueezy.com/v1", timeout=30, http=None):
        if not api_key:
            raise ConfigurationError("Server configuration error")
        self.api_key = api_key
        self.store_id = store_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get("LEMON_SQUEEZY_API_KEY"),
            store_id=config.get("LEMON_SQUEEZY_STORE_ID"),
            base_url=config.get("LEMON_SQUEEZY_API_URL") or "https://api.lemonsqueezy.com/v1",
            timeout=config.get("BILLING_HTTP_TIMEOUT") or 30,
        )

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/vnd.api+json",
            "Content-Type": "application/vnd.api+json",
        }

    def _request(self, method, path, **kwargs):
        try:
            return self.http.request(method, f"{self.base_url}{path}", headers=self._headers(),
                                     timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise UpstreamServiceError("Billing provider unreachable", details=str(e))

    def create_checkout(self, variant_id: str, email: str, user_id) -> str:
        if not self.store_id:
            raise ConfigurationError("Server configuration error")
        body = {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "checkout_data": {
                        "email": email,
                        "custom": {"user_id": str(user_id)},
                    },
                },
                "relationships": {
                    "store": {"data": {"type": "stores", "id": str(self.store_id)}},
                    "variant": {"data": {"type": "variants", "id": str(variant_id)}},
                },
            }
        }
        resp = self._request("POST", "/checkouts", json=body)
        if not resp.ok:
            raise upstream_error_from_response(resp, "Failed to create checkout session")
        url = ((resp.json().get("data") or {}).get("attributes") or {}).get("url")
        if not url:
            raise UpstreamServiceError("No checkout URL returned", status_code=500)
        return url

    def get_customer_portal_url(self, subscription_id: str) -> str:
        resp = self._request("GET", f"/subscriptions/{subscription_id}")
        if resp.status_code == 404:
            raise NotFoundError("Subscription not found")
        if not resp.ok:
            raise upstream_error_from_response(resp, "Failed to fetch subscription details")
        data = resp.json()
        urls = (((data.get("data") or {}).get("attributes") or {}).get("urls")) or {}
        portal = urls.get("customer_portal") or urls.get("portal")
        if not portal:
            raise UpstreamServiceError("Customer portal URL not available", status_code=500)
        return portal
