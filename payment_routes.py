from datetime import datetime

from flask import Blueprint, jsonify, request, current_app

from billing_service import LemonSqueezyClient, handle_webhook
from decorators import login_required
from errors import AuthenticationError, NotFoundError, ValidationError
from extensions import db
from models import Profile

payment = Blueprint('payment', __name__)
webhooks = Blueprint('webhooks', __name__)


def _billing_client():
    factory = current_app.extensions.get("billing_client_factory") or LemonSqueezyClient.from_config
    return factory(current_app.config)


@payment.route('/create-checkout', methods=['POST'])
@login_required
def create_checkout(ctx):
    payload = request.get_json(silent=True) or {}
    product_id = payload.get('productId')
    email = (payload.get('email') or ctx.email or '').strip()
    user_id = payload.get('userId', ctx.user_id)

    if not product_id or not email or not user_id:
        raise ValidationError("Missing required fields: productId, email, userId")
    if str(user_id) != str(ctx.user_id):
        raise AuthenticationError("userId does not match the signed-in user")

    checkout_url = _billing_client().create_checkout(str(product_id), email, ctx.user_id)
    current_app.logger.info("Checkout created for user %s: %s", ctx.user_id, checkout_url)
    return jsonify({"success": True, "checkoutUrl": checkout_url})


@payment.route('/billing-portal', methods=['POST'])
@login_required
def billing_portal(ctx):
    profile = db.session.get(Profile, ctx.user_id)
    if not profile.billing_subscription_id:
        raise NotFoundError("No active subscription found")
    url = _billing_client().get_customer_portal_url(profile.billing_subscription_id)
    current_app.logger.info("Generated portal URL for user %s", ctx.user_id)
    return jsonify({"success": True, "url": url})


@webhooks.route('/lemon-squeezy', methods=['GET'])
def lemon_squeezy_ping():
    return jsonify({
        "message": "Webhook endpoint is working!",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "method": request.method,
        "url": request.url,
    })


@webhooks.route('/lemon-squeezy', methods=['POST'])
def lemon_squeezy_webhook():
    raw_body = request.get_data(cache=False)
    current_app.logger.info("Webhook received (%s bytes)", len(raw_body))
    body, status = handle_webhook(
        raw_body,
        request.headers.get('X-Signature'),
        current_app.config.get('LEMON_SQUEEZY_WEBHOOK_SECRET'),
    )
    return jsonify(body), status
