"""Reads the caller identity forwarded by the external identity provider."""

from __future__ import annotations

from fastapi import HTTPException, Request

from quizlive.constants.network_constants import (
    USER_EMAIL_HEADER,
    USER_ID_HEADER,
    USER_NAME_HEADER,
    USER_ROLE_HEADER,
)
from quizlive.core.models import Role
from quizlive.core.services.profile_directory import Identity


def read_identity(request: Request) -> Identity:
    """Build an :class:`Identity` from the gateway headers; 401 when absent."""
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Sign in to continue.")

    raw_role = (request.headers.get(USER_ROLE_HEADER) or Role.STUDENT.value).strip().lower()
    try:
        role = Role(raw_role)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown role '{raw_role}'.") from exc

    return Identity(
        user_id=user_id,
        role=role,
        email=(request.headers.get(USER_EMAIL_HEADER) or "").strip(),
        full_name=(request.headers.get(USER_NAME_HEADER) or "").strip() or None,
    )
