"""
Bitbucket Cloud API client for repository discovery and branch lookup.
"""

import requests
import time
import logging
from typing import Dict, Any, Optional, List, Tuple
from urllib.parse import quote

from .. import __version__
from ..config import BitbucketConfig
from ..error_handling import AuthError, TransportError
from ..models import RepositoryDescriptor

logger = logging.getLogger(__name__)


class BitbucketClient:
    """
    Bitbucket Cloud REST API client with retry logic.

    Lists the repositories an account can see and checks whether a branch
    exists in a repository. Credentials are passed on every call; the client
    holds no account state of its own.
    """

    def __init__(self, config: Optional[BitbucketConfig] = None, session: Optional[requests.Session] = None):
        """
        Initialize Bitbucket API client.

        Args:
            config: Bitbucket API configuration
            session: Pre-built requests session (mainly for tests)
        """
        config = config or BitbucketConfig()

        self.base_url = config.api_base_url.rstrip('/')
        self.timeout = config.timeout
        self.max_retries = config.max_retries
        self.page_length = config.page_length
        self.role = config.role

        self.session = session or requests.Session()
        self._setup_session()

    def _setup_session(self) -> None:
        """Set up the requests session with headers."""
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"bitbucket-dependency-bumper/{__version__}"
        })

    def _make_request(
        self,
        method: str,
        url: str,
        auth: Tuple[str, str],
        allow_not_found: bool = False,
        **kwargs
    ) -> requests.Response:
        """
        Make a request to the Bitbucket API with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Absolute URL, or endpoint relative to the API base URL
            auth: (identity, secret) pair for HTTP basic authentication
            allow_not_found: Return 404 responses instead of raising
            **kwargs: Additional arguments for requests

        Returns:
            Response object

        Raises:
            AuthError: If the credentials are rejected
            TransportError: If the request fails after retries
        """
        if not url.startswith(("http://", "https://")):
            url = f"{self.base_url}/{url.lstrip('/')}"

        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    auth=auth,
                    timeout=self.timeout,
                    **kwargs
                )
            except requests.exceptions.RequestException as e:
                if attempt < self.max_retries:
                    wait_time = 2 ** attempt
                    logger.warning(f"Request to {url} failed: {e}. Retrying in {wait_time} seconds")
                    time.sleep(wait_time)
                    continue
                raise TransportError(
                    f"Request failed after {self.max_retries} retries",
                    url=url,
                    retry_count=self.max_retries,
                    cause=e
                )

            if response.status_code in (401, 403):
                raise AuthError(
                    f"Bitbucket rejected the credentials: {self._error_message(response)}",
                    url=url,
                    status_code=response.status_code
                )

            if response.status_code == 404 and allow_not_found:
                return response

            if response.status_code == 429 or response.status_code >= 500:
                if attempt < self.max_retries:
                    wait_time = self._retry_wait(response, attempt)
                    logger.warning(f"Bitbucket returned {response.status_code}. Retrying in {wait_time} seconds")
                    time.sleep(wait_time)
                    continue

            if not response.ok:
                raise TransportError(
                    f"Bitbucket API request failed: {response.status_code} - {self._error_message(response)}",
                    url=url,
                    status_code=response.status_code,
                    retry_count=attempt
                )

            return response

        raise TransportError("Unexpected error in request retry logic", url=url)

    def _retry_wait(self, response: requests.Response, attempt: int) -> int:
        """
        Calculate how long to wait before retrying a throttled or failed request.

        Returns:
            Wait time in seconds
        """
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return int(retry_after)
        return 2 ** attempt

    def _error_message(self, response: requests.Response) -> str:
        """Extract the error message from a Bitbucket error payload."""
        try:
            data = response.json()
        except ValueError:
            return response.reason or "no details"
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            return data["error"].get("message") or response.reason or "no details"
        return response.reason or "no details"

    def _json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from Bitbucket API at {response.url}", cause=e)
        if not isinstance(data, dict):
            raise TransportError(f"Unexpected response body from Bitbucket API at {response.url}")
        return data

    def list_repositories(self, identity: str, secret: str) -> List[RepositoryDescriptor]:
        """
        List every repository the account can see, following pagination.

        Args:
            identity: Bitbucket username
            secret: Bitbucket app password

        Returns:
            Repository descriptors in the order returned by the API

        Raises:
            AuthError: If the credentials are rejected
            TransportError: On network failures or unexpected responses
        """
        auth = (identity, secret)
        url: Optional[str] = "repositories"
        params: Optional[Dict[str, Any]] = {"role": self.role, "pagelen": self.page_length}
        repositories: List[RepositoryDescriptor] = []
        pages = 0

        while url:
            response = self._make_request("GET", url, auth, params=params)
            page = self._json(response)
            pages += 1
            if not isinstance(page.get("values", []), list):
                raise TransportError(
                    f"Unexpected repository listing from Bitbucket API at {response.url}",
                    url=response.url,
                    status_code=response.status_code
                )

            for item in page.get("values", []):
                try:
                    repositories.append(RepositoryDescriptor.from_api(item))
                except ValueError as e:
                    logger.warning(f"Skipping repository entry: {e}")

            # The "next" link already carries the query string
            url = page.get("next")
            params = None

        logger.info(f"Found {len(repositories)} repositories across {pages} page(s)")
        return repositories

    def branch_exists(self, identity: str, secret: str, repo_full_name: str, branch_name: str) -> bool:
        """
        Check whether a branch exists in a repository.

        Args:
            identity: Bitbucket username
            secret: Bitbucket app password
            repo_full_name: Repository full name (workspace/slug)
            branch_name: Branch to look for

        Returns:
            True if the branch exists

        Raises:
            AuthError: If the credentials are rejected
            TransportError: On network failures or unexpected responses
        """
        endpoint = (
            f"repositories/{quote(repo_full_name, safe='/')}"
            f"/refs/branches/{quote(branch_name, safe='')}"
        )
        response = self._make_request("GET", endpoint, (identity, secret), allow_not_found=True)
        exists = response.status_code != 404
        logger.debug(f"Branch '{branch_name}' {'exists' if exists else 'is absent'} in {repo_full_name}")
        return exists
