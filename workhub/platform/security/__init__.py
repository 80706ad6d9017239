from workhub.platform.security.context import AuthContext
from workhub.platform.security.errors import AuthorizationError
from workhub.platform.security.scope import AccessScope, resolve_access_scope

__all__ = ["AccessScope", "AuthContext", "AuthorizationError", "resolve_access_scope"]
