"""Session/identity binding and the authorization context it maintains."""

from .binding import ANONYMOUS, AuthorizationContext, SessionBinding, build_context

__all__ = ["ANONYMOUS", "AuthorizationContext", "SessionBinding", "build_context"]
