"""Service for user profiles and teacher approval."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from quizlive.core.errors import ConflictError, NotFoundError, PermissionDeniedError, QuizValidationError
from quizlive.core.models import Profile, Role

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Identity:
    """Caller identity as forwarded by the external identity provider."""

    user_id: str
    role: Role = Role.STUDENT
    email: str = ""
    full_name: str | None = None


class ProfileDirectory:
    """Keeps profile rows in sync with the identity provider and gates roles."""

    def __init__(self, store) -> None:
        self._store = store

    def ensure_profile(self, identity: Identity) -> Profile:
        """Return the caller's profile, creating it on first sight.

        Teachers start unapproved; every other role is approved immediately.
        The role is only taken from the identity on creation.
        """
        profile = self._store.get_profile(identity.user_id)
        if profile is not None:
            return profile
        profile = Profile(
            id=identity.user_id,
            email=identity.email,
            role=identity.role,
            full_name=identity.full_name,
            is_approved=identity.role is not Role.TEACHER,
        )
        try:
            created = self._store.add_profile(profile)
        except ConflictError:
            # Two first requests raced; the other one won.
            return self._store.get_profile(identity.user_id)
        logger.info("Created %s profile %s", created.role.value, created.id)
        return created

    def get_profile(self, profile_id: str) -> Profile:
        profile = self._store.get_profile(profile_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    def update_profile(
        self,
        profile_id: str,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> Profile:
        updates: dict[str, object] = {}
        if full_name is not None:
            stripped = full_name.strip()
            if not stripped:
                raise QuizValidationError("Full name cannot be empty.")
            updates["full_name"] = stripped
        if avatar_url is not None:
            updates["avatar_url"] = avatar_url.strip() or None
        if not updates:
            return self.get_profile(profile_id)
        profile = self._store.update_profile(profile_id, **updates)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    def list_profiles(self) -> list[Profile]:
        return self._store.list_profiles()

    def list_teachers(self) -> list[Profile]:
        return self._store.list_profiles(role=Role.TEACHER.value)

    def set_teacher_approval(self, teacher_id: str, is_approved: bool) -> Profile:
        teacher = self.get_profile(teacher_id)
        if teacher.role is not Role.TEACHER:
            raise ConflictError("Only teacher accounts need approval.")
        updated = self._store.update_profile(teacher_id, is_approved=is_approved)
        logger.info("Teacher %s %s", teacher_id, "approved" if is_approved else "rejected")
        return updated

    @staticmethod
    def require_admin(profile: Profile) -> None:
        if profile.role is not Role.ADMIN:
            raise PermissionDeniedError("Admin access required")

    @staticmethod
    def require_teacher(profile: Profile) -> None:
        if profile.can_host:
            return
        if profile.role is not Role.TEACHER:
            raise PermissionDeniedError("Teacher access required")
        raise PermissionDeniedError("Your teacher account is awaiting admin approval")
