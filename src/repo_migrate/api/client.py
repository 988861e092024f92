"""Source and target host API clients."""

import asyncio
import base64
import json
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import aiohttp
import requests
from loguru import logger
from pydantic import BaseModel
from requests.utils import parse_header_links

from ..config.config import AzureDevOpsConfig, GitHubConfig
from ..exceptions import CredentialError
from ..models.repository import (
    SourceProject,
    SourceRepository,
    TargetOrganization,
    TargetRepository,
    TargetUser,
)
from .exceptions import (
    RemoteAPIError,
    RemoteAuthenticationError,
    RemoteNotFoundError,
    RemoteRateLimitError,
    RemoteTimeoutError,
    RepositoryExistsError,
)

USER_AGENT = 'repo-migrate/0.1.0'


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


class HostClient:
    """Base REST client shared by the source and target host clients."""

    host_name = 'Remote host'

    def __init__(self, base_url: str, headers: Dict[str, str], timeout: int = 30):
        """Initialize host client.

        Args:
            base_url: API root URL
            headers: Headers sent with every request, including authentication
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._headers = {
            'Content-Type': 'application/json',
            'User-Agent': USER_AGENT,
            **headers,
        }
        self.session = requests.Session()
        self.session.headers.update(self._headers)

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full API URL
        """
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _error_message(self, status_code: int, data: Any, text: str) -> str:
        """Pick the most descriptive message for a failed response."""
        if isinstance(data, dict) and data.get('message'):
            return str(data['message'])
        if text:
            return f'HTTP {status_code}: {text}'
        return f'HTTP {status_code}'

    def _raise_for_status(
        self, status_code: int, data: Any, text: str, headers: Dict[str, str]
    ) -> None:
        """Raise the mapped exception for an error response.

        Raises:
            RemoteAPIError: For various API errors
        """
        if status_code < 400:
            return

        message = self._error_message(status_code, data, text)

        if status_code == 429:
            retry_after = int(headers.get('Retry-After', 60))
            raise RemoteRateLimitError(
                f'{self.host_name} rate limit exceeded. Retry after {retry_after} seconds',
                retry_after=retry_after,
                status_code=status_code,
                response_data=data,
            )

        if status_code in (401, 403):
            raise RemoteAuthenticationError(
                f'{self.host_name} authentication failed: {message}',
                status_code=status_code,
                response_data=data,
            )

        if status_code == 404:
            raise RemoteNotFoundError(
                f'{self.host_name} resource not found: {message}',
                status_code=status_code,
                response_data=data,
            )

        raise RemoteAPIError(
            f'{self.host_name} API request failed: {message}',
            status_code=status_code,
            response_data=data,
        )

    @staticmethod
    def _parse_body(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Handle API response and convert to standard format.

        Args:
            response: Raw HTTP response

        Returns:
            Standardized API response

        Raises:
            RemoteAPIError: For various API errors
        """
        headers = dict(response.headers)
        text = response.text if response.content else ''
        data = self._parse_body(text)

        self._raise_for_status(response.status_code, data, text, headers)

        return APIResponse(
            status_code=response.status_code,
            data=data,
            headers=headers,
            success=200 <= response.status_code < 300,
        )

    def _request(self, method: str, endpoint: str, **kwargs) -> APIResponse:
        url = self._build_url(endpoint)

        try:
            response = self.session.request(
                method, url, timeout=self.timeout, **kwargs
            )
            return self._handle_response(response)
        except requests.Timeout as e:
            logger.error(f'{self.host_name} {method} request timed out: {e}')
            raise RemoteTimeoutError(
                f'{self.host_name} request timed out after {self.timeout} seconds'
            )
        except requests.RequestException as e:
            logger.error(f'Network error during {method} request: {e}')
            raise RemoteAPIError(f'{self.host_name} network error: {e}')

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request.

        Args:
            endpoint: API endpoint
            params: Query parameters
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        return self._request('GET', endpoint, params=params, **kwargs)

    def post(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make POST request.

        Args:
            endpoint: API endpoint
            data: Request body data
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        return self._request('POST', endpoint, json=data, **kwargs)

    async def _make_request_async(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """Make asynchronous API request.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters
            data: Request body data

        Returns:
            API response
        """
        url = self._build_url(endpoint)
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(
                headers=self._headers, timeout=timeout
            ) as session:
                async with session.request(
                    method=method, url=url, params=params, json=data
                ) as response:
                    response_headers = dict(response.headers)
                    text = await response.text()
                    response_data = self._parse_body(text)

                    self._raise_for_status(
                        response.status, response_data, text, response_headers
                    )

                    return APIResponse(
                        status_code=response.status,
                        data=response_data,
                        headers=response_headers,
                        success=200 <= response.status < 300,
                    )

        except asyncio.TimeoutError:
            logger.error(f'{self.host_name} {method} {endpoint} timed out')
            raise RemoteTimeoutError(
                f'{self.host_name} request timed out after {self.timeout} seconds'
            )
        except aiohttp.ClientError as e:
            logger.error(f'Network error during API request: {e}')
            raise RemoteAPIError(f'{self.host_name} network error: {e}')

    async def get_async(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous GET request."""
        return await self._make_request_async('GET', endpoint, params=params)

    async def post_async(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous POST request."""
        return await self._make_request_async('POST', endpoint, data=data)

    def close(self):
        """Close the client session."""
        self.session.close()
        logger.debug(f'{self.host_name} client session closed')

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class AzureDevOpsClient(HostClient):
    """Azure DevOps REST client (source host)."""

    host_name = 'Azure DevOps'

    def __init__(self, config: AzureDevOpsConfig, token: Optional[str] = None):
        """Initialize Azure DevOps client.

        Args:
            config: Azure DevOps configuration
            token: Plaintext personal access token, overrides ``config.token``
        """
        token = token or config.token
        if not token:
            raise CredentialError('No Azure DevOps token provided')

        basic = base64.b64encode(f':{token}'.encode()).decode()
        super().__init__(
            f'{config.url}/{config.organization}',
            {'Authorization': f'Basic {basic}', 'Accept': 'application/json'},
            timeout=config.timeout,
        )
        self.config = config

        logger.info(
            f'Initialized Azure DevOps client for organization {config.organization}'
        )

    def _params(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = {'api-version': self.config.api_version}
        if extra:
            params.update(extra)
        return params

    def get_paginated(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Get all pages of a continuation-token paginated endpoint.

        Args:
            endpoint: API endpoint
            params: Query parameters

        Returns:
            List of all items from all pages
        """
        all_items = []
        params = self._params(params)

        while True:
            response = self.get(endpoint, params=params)
            items = (response.data or {}).get('value', [])
            all_items.extend(items)

            continuation = {
                k.lower(): v for k, v in response.headers.items()
            }.get('x-ms-continuationtoken')
            if not continuation or not items:
                break
            params['continuationToken'] = continuation

        logger.info(f'Retrieved {len(all_items)} items from {endpoint}')
        return all_items

    def list_projects(self) -> List[SourceProject]:
        """List projects in the organization."""
        return [
            SourceProject.from_api(item)
            for item in self.get_paginated('/_apis/projects')
        ]

    def list_repositories(self, project: Optional[str] = None) -> List[SourceRepository]:
        """List Git repositories of one project, or of every project.

        Args:
            project: Project name; all projects when omitted

        Returns:
            Repositories
        """
        projects = [project] if project else [p.name for p in self.list_projects()]
        repositories = []

        for project_name in projects:
            logger.debug(f'Fetching repositories for project: {project_name}')
            response = self.get(
                f'/{project_name}/_apis/git/repositories', params=self._params()
            )
            for item in (response.data or {}).get('value', []):
                repositories.append(SourceRepository.from_api(item))

        logger.info(f'Total repositories found: {len(repositories)}')
        return repositories

    def get_repository(self, repository_id: str) -> SourceRepository:
        """Fetch one repository, including its clone URL, by ID."""
        response = self.get(
            f'/_apis/git/repositories/{repository_id}', params=self._params()
        )
        return SourceRepository.from_api(response.data)

    def validate_token(self) -> bool:
        """Check the token can read Git repositories of the organization."""
        try:
            response = self.get('/_apis/git/repositories', params=self._params())
            return response.status_code in (200, 203) and response.data is not None
        except (RemoteAuthenticationError, RemoteNotFoundError) as e:
            logger.error(f'Azure DevOps token validation failed: {e}')
            return False


class GitHubClient(HostClient):
    """GitHub REST client (target host)."""

    host_name = 'GitHub'

    RETRYABLE_STATUS_CODES = (502, 503, 504)

    def __init__(self, config: GitHubConfig, token: Optional[str] = None):
        """Initialize GitHub client.

        Args:
            config: GitHub configuration
            token: Plaintext personal access token, overrides ``config.token``
        """
        token = token or config.token
        if not token:
            raise CredentialError('No GitHub token provided')

        super().__init__(
            config.url,
            {
                'Authorization': f'Bearer {token}',
                'Accept': 'application/vnd.github.v3+json',
            },
            timeout=config.timeout,
        )
        self.config = config

        logger.info(f'Initialized GitHub client for {config.url}')

    def _error_message(self, status_code: int, data: Any, text: str) -> str:
        message = super()._error_message(status_code, data, text)
        if isinstance(data, dict):
            details = [
                error.get('message')
                for error in data.get('errors') or []
                if isinstance(error, dict) and error.get('message')
            ]
            if details:
                message = f'{message} ({"; ".join(details)})'
        return message

    def _raise_for_status(
        self, status_code: int, data: Any, text: str, headers: Dict[str, str]
    ) -> None:
        if status_code == 422:
            message = self._error_message(status_code, data, text)
            if 'already exists' in message.lower():
                raise RepositoryExistsError(
                    f'GitHub repository already exists: {message}',
                    status_code=status_code,
                    response_data=data,
                )
        super()._raise_for_status(status_code, data, text, headers)

    def get_paginated(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, per_page: int = 100
    ) -> List[Dict[str, Any]]:
        """Get all pages of a Link-header paginated endpoint.

        Args:
            endpoint: API endpoint
            params: Query parameters
            per_page: Items per page

        Returns:
            List of all items from all pages
        """
        all_items = []
        params = dict(params or {})
        params['per_page'] = per_page
        next_endpoint = endpoint

        while next_endpoint:
            response = self.get(next_endpoint, params=params)
            items = response.data or []
            all_items.extend(items)

            next_endpoint = None
            link_header = {k.lower(): v for k, v in response.headers.items()}.get(
                'link'
            )
            if link_header and items:
                for link in parse_header_links(link_header):
                    if link.get('rel') == 'next':
                        # The next URL carries its own query string
                        next_endpoint = link['url']
                        params = None
                        break

        logger.info(f'Retrieved {len(all_items)} items from {endpoint}')
        return all_items

    def get_user(self) -> TargetUser:
        """Get the authenticated user."""
        response = self.get('/user')
        return TargetUser.from_api(response.data)

    def list_organizations(self) -> List[TargetOrganization]:
        """List organizations of the authenticated user."""
        return [
            TargetOrganization.from_api(item)
            for item in self.get_paginated('/user/orgs')
        ]

    def list_repositories(self, organization: Optional[str] = None) -> List[TargetRepository]:
        """List repositories of an organization, or of the authenticated user.

        Args:
            organization: Organization login; user repositories when omitted

        Returns:
            Repositories
        """
        endpoint = f'/orgs/{organization}/repos' if organization else '/user/repos'
        return [TargetRepository.from_api(item) for item in self.get_paginated(endpoint)]

    async def get_user_async(self) -> TargetUser:
        """Get the authenticated user without blocking the event loop."""
        response = await self.get_async('/user')
        return TargetUser.from_api(response.data)

    async def create_repository(
        self, name: str, organization: Optional[str] = None, private: bool = False
    ) -> TargetRepository:
        """Create an empty repository.

        Server errors (502/503/504) and timeouts are retried up to
        ``config.max_retries`` attempts with linear backoff.

        Args:
            name: Repository name
            organization: Organization login; user namespace when omitted
            private: Repository visibility

        Returns:
            Created repository

        Raises:
            RepositoryExistsError: If the name is already taken
            RemoteAPIError: For any other failure
        """
        endpoint = f'/orgs/{organization}/repos' if organization else '/user/repos'
        payload = {
            'name': name,
            'private': private,
            'auto_init': False,
            'description': self.config.description,
        }

        for attempt in range(1, self.config.max_retries + 1):
            try:
                response = await self.post_async(endpoint, data=payload)
                logger.info(f'Created GitHub repository: {name}')
                return TargetRepository.from_api(response.data)
            except RemoteAPIError as e:
                retryable = isinstance(e, RemoteTimeoutError) or (
                    e.status_code in self.RETRYABLE_STATUS_CODES
                )
                if not retryable or attempt == self.config.max_retries:
                    raise
                logger.warning(
                    f'Attempt {attempt} to create {name} failed ({e}), retrying...'
                )
                await asyncio.sleep(attempt * self.config.retry_backoff)

        raise RemoteAPIError(f'Failed to create repository {name} after retries')


class HostClientFactory:
    """Factory for creating host API clients."""

    @staticmethod
    def create_source_client(
        config: AzureDevOpsConfig, token: Optional[str] = None
    ) -> AzureDevOpsClient:
        """Create Azure DevOps client.

        Raises:
            CredentialError: If no token is available
        """
        return AzureDevOpsClient(config, token)

    @staticmethod
    def create_target_client(
        config: GitHubConfig, token: Optional[str] = None
    ) -> GitHubClient:
        """Create GitHub client.

        Raises:
            CredentialError: If no token is available
        """
        return GitHubClient(config, token)
