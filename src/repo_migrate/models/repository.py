"""Repository models for the source and target hosts."""

import re
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, Field, validator

_INVALID_NAME_CHARS = re.compile(r'[^a-z0-9\-_.]')
_REPEATED_SEPARATORS = re.compile(r'-{2,}')


def normalize_repository_name(name: str) -> str:
    """Normalize a repository name to characters the target host accepts.

    Lower-cases, replaces anything outside ``[a-z0-9-_.]`` with ``-``,
    collapses runs of ``-`` and trims them from both ends.

    Raises:
        ValueError: If nothing usable remains
    """
    normalized = _INVALID_NAME_CHARS.sub('-', name.lower())
    normalized = _REPEATED_SEPARATORS.sub('-', normalized).strip('-')
    if not normalized:
        raise ValueError(f'Repository name {name!r} has no valid characters')
    return normalized


def parse_source_repository_name(source_location: str) -> str:
    """Extract the repository name from a source clone URL.

    Azure DevOps clone URLs look like
    ``https://org@dev.azure.com/org/project/_git/repo``.
    """
    path = urlparse(source_location).path if '://' in source_location else source_location
    segments = [segment for segment in path.split('/') if segment]
    if not segments:
        raise ValueError(f'Cannot parse repository name from {source_location!r}')
    name = unquote(segments[-1])
    if name.endswith('.git'):
        name = name[:-4]
    if not name:
        raise ValueError(f'Cannot parse repository name from {source_location!r}')
    return name


def parse_target_location(target_location: str) -> Tuple[str, Optional[str]]:
    """Split a target location into owner and optional repository name.

    Accepts ``owner``, ``owner/name`` or a full ``https://github.com/owner/name``
    URL.
    """
    path = urlparse(target_location).path if '://' in target_location else target_location
    segments = [segment for segment in path.split('/') if segment]
    if not segments or len(segments) > 2:
        raise ValueError(f'Invalid target location: {target_location!r}')
    owner = segments[0]
    name = segments[1] if len(segments) == 2 else None
    if name and name.endswith('.git'):
        name = name[:-4]
    return owner, name or None


class SourceProject(BaseModel):
    """Azure DevOps project."""

    id: str = Field(..., description='Project ID')
    name: str = Field(..., description='Project name')
    state: Optional[str] = Field(default=None, description='Project state')
    url: Optional[str] = Field(default=None, description='API URL')

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'SourceProject':
        return cls(
            id=data['id'],
            name=data['name'],
            state=data.get('state'),
            url=data.get('url'),
        )


class SourceRepository(BaseModel):
    """Azure DevOps Git repository."""

    id: str = Field(..., description='Repository ID')
    name: str = Field(..., description='Repository name')
    remote_url: str = Field(..., description='HTTPS clone URL')
    project: Optional[SourceProject] = Field(default=None, description='Owning project')
    default_branch: Optional[str] = Field(
        default=None, description='Default branch ref'
    )
    size: Optional[int] = Field(default=None, description='Repository size in bytes')
    web_url: Optional[str] = Field(default=None, description='Web URL')
    is_disabled: Optional[bool] = Field(
        default=None, description='Repository is disabled'
    )

    @validator('remote_url')
    def validate_remote_url(cls, v):
        """Validate the clone URL is HTTP(S)."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Remote URL must start with http:// or https://')
        return v

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'SourceRepository':
        project = data.get('project')
        return cls(
            id=data['id'],
            name=data['name'],
            remote_url=data['remoteUrl'],
            project=SourceProject.from_api(project) if project else None,
            default_branch=data.get('defaultBranch'),
            size=data.get('size'),
            web_url=data.get('webUrl'),
            is_disabled=data.get('isDisabled'),
        )


class TargetUser(BaseModel):
    """GitHub user."""

    id: int = Field(..., description='User ID')
    login: str = Field(..., description='Login name')
    name: Optional[str] = Field(default=None, description='Display name')

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TargetUser':
        return cls(id=data['id'], login=data['login'], name=data.get('name'))


class TargetOrganization(BaseModel):
    """GitHub organization."""

    id: int = Field(..., description='Organization ID')
    login: str = Field(..., description='Organization login')
    description: Optional[str] = Field(default=None, description='Description')

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TargetOrganization':
        return cls(
            id=data['id'], login=data['login'], description=data.get('description')
        )


class TargetRepository(BaseModel):
    """GitHub repository."""

    id: Optional[int] = Field(default=None, description='Repository ID')
    name: str = Field(..., description='Repository name')
    full_name: str = Field(..., description='owner/name')
    private: bool = Field(default=False, description='Repository is private')
    html_url: Optional[str] = Field(default=None, description='Web URL')
    clone_url: Optional[str] = Field(default=None, description='HTTPS clone URL')
    created: bool = Field(
        default=True, description='False when the repository already existed'
    )

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TargetRepository':
        return cls(
            id=data.get('id'),
            name=data['name'],
            full_name=data.get('full_name') or data['name'],
            private=bool(data.get('private', False)),
            html_url=data.get('html_url'),
            clone_url=data.get('clone_url'),
        )
