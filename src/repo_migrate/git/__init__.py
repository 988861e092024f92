"""Git operations module for repository migration."""

from .operations import GitCommandRunner, embed_credentials, mask_secrets
from .clone import GitCloner, CloneResult
from .push import GitPusher, PushResult
from .workspace import ScopedWorkspace, WorkspaceManager

__all__ = [
    'GitCommandRunner',
    'embed_credentials',
    'mask_secrets',
    'GitCloner',
    'CloneResult',
    'GitPusher',
    'PushResult',
    'ScopedWorkspace',
    'WorkspaceManager',
]
