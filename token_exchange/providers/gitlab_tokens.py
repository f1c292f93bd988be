"""GitLab personal access token issuer driving the web sign-in flow."""

import re
from collections.abc import Sequence
from datetime import date
from typing import Any

import httpx
import structlog

from token_exchange.enums import TokenScope
from token_exchange.exceptions import TokenCreationError

log = structlog.get_logger(__name__)


class GitLabTokenIssuer:
    """Mint GitLab personal access tokens from a username and password.

    GitLab's REST API cannot create a token for yourself from a password, so
    this issuer does what a browser would:

    1. load ``/users/sign_in`` and read the CSRF token,
    2. post the login form,
    3. load the personal access tokens settings page for a fresh CSRF token,
    4. post the token form and read the new token from the response,
    5. sign out again.

    Supports gitlab.com and self-hosted instances, including ones served
    below a path (``https://example.com/gitlab``). Each call uses its own
    HTTP client, so no session outlives the call.

    Example:
        >>> issuer = GitLabTokenIssuer(timeout=30.0)
        >>> token = await issuer.create_personal_access_token(
        ...     "jdoe", "secret", "https://gitlab.example.com", "ci", REQUIRED_SCOPES
        ... )
    """

    SIGN_IN_PATH = "/users/sign_in"
    SIGN_OUT_PATH = "/users/sign_out"
    # Newest location first; older instances only serve the later paths
    TOKEN_PAGE_PATHS = (
        "/-/user_settings/personal_access_tokens",
        "/-/profile/personal_access_tokens",
        "/profile/personal_access_tokens",
    )

    CSRF_META_PATTERN = re.compile(r'<meta\s+name="csrf-token"\s+content="([^"]+)"')
    CSRF_INPUT_PATTERN = re.compile(r'<input[^>]*name="authenticity_token"[^>]*value="([^"]+)"')
    CREATED_TOKEN_PATTERN = re.compile(
        r'<input[^>]*(?:id|name)="created-personal-access-token"[^>]*value="([^"]+)"'
    )

    def __init__(
        self,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the issuer.

        Args:
            timeout: Timeout in seconds for each HTTP request
            verify_ssl: Whether to verify TLS certificates
            transport: Optional httpx transport (used to stub GitLab in tests)
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._transport = transport

    async def create_personal_access_token(
        self,
        username: str,
        password: str,
        server_url: str,
        token_name: str,
        scopes: Sequence[TokenScope],
        expires_at: date | None = None,
    ) -> str:
        """Sign in as ``username`` and mint a token.

        Raises:
            TokenCreationError: On invalid login, unexpected pages, or transport failure
        """
        base_url = server_url.rstrip("/")
        log.info("token_creation_started", server_url=base_url, username=username, token_name=token_name)

        try:
            async with httpx.AsyncClient(
                base_url=base_url,
                timeout=self.timeout,
                verify=self.verify_ssl,
                transport=self._transport,
                follow_redirects=False,
            ) as client:
                csrf_token = await self._sign_in(client, username, password)
                try:
                    token = await self._create_token(client, token_name, scopes, expires_at)
                finally:
                    await self._sign_out(client, csrf_token)
        except httpx.HTTPError as e:
            log.error("token_creation_request_failed", server_url=base_url, error=str(e))
            raise TokenCreationError(f"Request to {base_url} failed: {e}") from e

        log.info("token_created", server_url=base_url, username=username, token_name=token_name)
        return token

    async def _sign_in(self, client: httpx.AsyncClient, username: str, password: str) -> str:
        response = await client.get(self.SIGN_IN_PATH)
        if response.status_code != 200:
            raise TokenCreationError("Failed to load GitLab sign-in page", status_code=response.status_code)

        csrf_token = self._extract_csrf_token(response.text)
        if csrf_token is None:
            raise TokenCreationError("No CSRF token on sign-in page; is this a GitLab server?")

        response = await client.post(
            self.SIGN_IN_PATH,
            data={
                "authenticity_token": csrf_token,
                "user[login]": username,
                "user[password]": password,
                "user[remember_me]": "0",
            },
        )
        # A successful login redirects away from the sign-in page
        location = response.headers.get("location", "")
        if not response.is_redirect or self.SIGN_IN_PATH in location:
            raise TokenCreationError("Invalid username or password", status_code=response.status_code)

        log.debug("gitlab_signed_in", username=username)
        return csrf_token

    async def _create_token(
        self,
        client: httpx.AsyncClient,
        token_name: str,
        scopes: Sequence[TokenScope],
        expires_at: date | None,
    ) -> str:
        page_path, page = await self._load_token_page(client)

        csrf_token = self._extract_csrf_token(page.text)
        if csrf_token is None:
            raise TokenCreationError("No CSRF token on personal access tokens page")

        response = await client.post(
            page_path,
            data={
                "authenticity_token": csrf_token,
                "personal_access_token[name]": token_name,
                "personal_access_token[expires_at]": expires_at.isoformat() if expires_at else "",
                "personal_access_token[scopes][]": [str(scope) for scope in scopes],
            },
            headers={
                "Accept": "application/json, text/html",
                "X-CSRF-Token": csrf_token,
                "X-Requested-With": "XMLHttpRequest",
            },
        )

        # Older instances redirect back to the settings page, which shows the token once
        if response.is_redirect:
            response = await client.get(response.headers["location"])

        if response.status_code >= 400:
            raise TokenCreationError(
                f"Token creation rejected: {self._error_message(response)}",
                status_code=response.status_code,
                response_text=response.text[:500],
            )

        token = self._parse_token(response)
        if token is None:
            raise TokenCreationError(
                "GitLab response did not contain the new token",
                status_code=response.status_code,
            )
        return token

    async def _load_token_page(self, client: httpx.AsyncClient) -> tuple[str, httpx.Response]:
        status_code: int | None = None
        for path in self.TOKEN_PAGE_PATHS:
            response = await client.get(path)
            if response.status_code == 200:
                return path, response
            status_code = response.status_code
        raise TokenCreationError("Personal access tokens page not found", status_code=status_code)

    async def _sign_out(self, client: httpx.AsyncClient, csrf_token: str) -> None:
        try:
            await client.post(self.SIGN_OUT_PATH, data={"authenticity_token": csrf_token})
        except httpx.HTTPError as e:
            log.warning("gitlab_sign_out_failed", error=str(e))

    @classmethod
    def _extract_csrf_token(cls, html: str) -> str | None:
        match = cls.CSRF_META_PATTERN.search(html) or cls.CSRF_INPUT_PATTERN.search(html)
        return match.group(1) if match else None

    @classmethod
    def _parse_token(cls, response: httpx.Response) -> str | None:
        if "json" in response.headers.get("content-type", ""):
            try:
                data: Any = response.json()
            except ValueError:
                return None
            if isinstance(data, dict):
                return data.get("new_token") or data.get("token")
            return None
        match = cls.CREATED_TOKEN_PATTERN.search(response.text)
        return match.group(1) if match else None

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        if "json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except ValueError:
                return response.text[:200]
            if isinstance(data, dict):
                errors = data.get("errors") or data.get("message") or data.get("error")
                if isinstance(errors, list):
                    return ", ".join(str(e) for e in errors)
                if errors:
                    return str(errors)
        return response.reason_phrase or response.text[:200]
