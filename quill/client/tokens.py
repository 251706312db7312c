"""
Volatile holder for the access token. Lives as long as the client process;
the refresh token never passes through here (it rides in the HTTP-only cookie).
"""


class AccessTokenHolder:
    def __init__(self, token: str | None = None) -> None:
        self._token = token or None

    def get(self) -> str | None:
        return self._token

    def set(self, token: str | None) -> None:
        self._token = token or None

    def clear(self) -> None:
        self._token = None

    def __bool__(self) -> bool:
        return self._token is not None
