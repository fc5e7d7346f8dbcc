from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Dict, Optional, Tuple

from flask import current_app, g, jsonify, request, session

from descuentosya.database import get_db
from descuentosya.marketplace import Marketplace
from descuentosya.roles import Actor, AdminActor, BusinessActor, UserActor, actor_from_session
from descuentosya.services.results import CommandResult, ErrorKind

NOTIFICATIONS_EXTENSION = "descuentosya.notifications"
LOCKS_EXTENSION = "descuentosya.locks"

_STATUS_BY_ERROR = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.WRONG_BUSINESS: 403,
    ErrorKind.EXPIRED: 410,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.NOT_ELIGIBLE: 409,
    ErrorKind.SOLD_OUT: 409,
    ErrorKind.ALREADY_CLAIMED: 409,
    ErrorKind.ALREADY_USED: 409,
}


def get_marketplace() -> Marketplace:
    if "marketplace" not in g:
        g.marketplace = Marketplace(
            get_db(),
            notifications=current_app.extensions[NOTIFICATIONS_EXTENSION],
            locks=current_app.extensions[LOCKS_EXTENSION],
            config=current_app.config["MARKETPLACE_CONFIG"],
        )
    return g.marketplace


def current_actor() -> Optional[Actor]:
    return actor_from_session(session, admin_channel=current_app.config["ADMIN_CHANNEL_ID"])


def require_actor(*variants: type) -> Callable:
    """Route decorator: 401 without an actor, 403 when the actor is not one of ``variants``."""

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args, **kwargs):
            actor = current_actor()
            if actor is None:
                return jsonify({"error": "Not authenticated"}), 401
            if not isinstance(actor, variants):
                return jsonify({"error": "Forbidden"}), 403
            g.actor = actor
            return view(*args, **kwargs)

        return wrapper

    return decorator


require_user = require_actor(UserActor)
require_business = require_actor(BusinessActor)
require_admin = require_actor(AdminActor)


def json_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def result_response(
    result: CommandResult,
    key: Optional[str] = None,
    success_status: int = 200,
) -> Tuple[Any, int]:
    body = result.to_dict()
    value = result.value
    if key and value is not None and hasattr(value, "to_dict"):
        body[key] = value.to_dict()
    if result.success:
        return jsonify(body), success_status
    return jsonify(body), _STATUS_BY_ERROR.get(result.error, 400)


def query_float(name: str) -> Optional[float]:
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except ValueError:
        return None
