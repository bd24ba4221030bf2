"""Request principal resolution.

Authentication happens upstream; the gateway in front of this service
forwards the caller as ``X-User-Id`` / ``X-User-Role``. A guest presents
the token issued at checkout as a Bearer token, an ``X-Guest-Token``
header or a ``?token=`` query parameter.
"""

from fastapi import Header, Query

from ordering.guest.access import verify_guest_token
from ordering.order.access import Principal


def _guest_token(authorization, x_guest_token, token):
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return x_guest_token or token


async def get_principal(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    x_guest_token: str | None = Header(default=None),
    token: str | None = Query(default=None),
) -> Principal:
    if x_user_id:
        return Principal(user_id=x_user_id, role=x_user_role)

    guest_token = _guest_token(authorization, x_guest_token, token)
    if guest_token:
        return Principal(guest=verify_guest_token(guest_token))
    return Principal()
