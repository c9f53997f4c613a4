import typing as t

import structlog
from django.contrib.auth.models import AnonymousUser
from django.http import HttpRequest
from django.utils.translation import gettext_lazy as _
from ninja_extra import status
from ninja_extra.exceptions import APIException
from ninja_jwt.authentication import JWTAuth


class PermissionDenied(APIException):
    """Exception raised when user doesn't have required permissions."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = _("Permission denied")


class FelicityJWTAuth(JWTAuth):
    """JWT authentication with optional role requirements.

    The authenticated user id is bound into the structlog context, since the observability
    middleware runs before ninja resolves the bearer token.

    Usage:
        @route.post("/", auth=FelicityJWTAuth(roles=("organizer", "admin")))
        def create_event(request): ...
    """

    def __init__(self, *, roles: t.Iterable[str] | None = None) -> None:
        """Initialize the authentication class.

        Args:
            roles: The user roles allowed through. ``None`` lets any authenticated user in.
        """
        self.roles = frozenset(roles) if roles is not None else None
        super().__init__()

    def authenticate(self, request: HttpRequest, token: str) -> t.Any:
        """Authenticate the request and verify the caller's role.

        Raises:
            PermissionDenied: If the user role is not allowed on this endpoint.
        """
        user = super().authenticate(request, token)

        if user and not isinstance(user, AnonymousUser):
            structlog.contextvars.bind_contextvars(user_id=str(user.id), user_role=getattr(user, "role", None))
            if self.roles is not None and getattr(user, "role", None) not in self.roles:
                raise PermissionDenied(str(_("Your role is not allowed to perform this action.")))

        return user


class OptionalAuth(FelicityJWTAuth):
    """Optional JWT authentication.

    Requests without a bearer token go through as ``AnonymousUser``, so public endpoints can
    still tailor their answer to a logged-in caller (e.g. organizers seeing their drafts).
    """

    def __call__(self, request: HttpRequest) -> t.Any | None:
        """Fall back to an anonymous user when no token is sent."""
        auth_value = request.headers.get(self.header)
        if not auth_value:
            request.user = AnonymousUser()
            return request.user
        parts = auth_value.split(" ")
        if parts[0].lower() != self.openapi_scheme:
            return None
        token = " ".join(parts[1:])
        return self.authenticate(request, token)
