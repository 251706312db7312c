from quill.client.api import AuthAPI, AuthResult
from quill.client.forms import FilePart, LoginForm, SignupForm
from quill.client.gateway import RequestGateway
from quill.client.guard import LOADING_PLACEHOLDER, RouteGuard
from quill.client.refresh import RefreshCoordinator
from quill.client.session import SessionContext, SessionState
from quill.client.signals import SignOutSignal
from quill.client.tokens import AccessTokenHolder

__all__ = [
    "AccessTokenHolder",
    "AuthAPI",
    "AuthResult",
    "FilePart",
    "LOADING_PLACEHOLDER",
    "LoginForm",
    "RefreshCoordinator",
    "RequestGateway",
    "RouteGuard",
    "SessionContext",
    "SessionState",
    "SignOutSignal",
    "SignupForm",
]
