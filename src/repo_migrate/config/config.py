"""Configuration management for the repository migration tool."""

from typing import Optional, Dict, Any
from pathlib import Path
import os

from pydantic import BaseModel, Field, validator
import yaml
from dotenv import load_dotenv


def _validate_http_url(v: str) -> str:
    if not v.startswith(('http://', 'https://')):
        raise ValueError('URL must start with http:// or https://')
    return v.rstrip('/')


class AzureDevOpsConfig(BaseModel):
    """Configuration for the Azure DevOps source host."""

    url: str = Field(default='https://dev.azure.com', description='Azure DevOps URL')
    organization: str = Field(..., description='Azure DevOps organization name')
    token: Optional[str] = Field(default=None, description='Personal access token')
    api_version: str = Field(default='7.0', description='REST API version')
    timeout: int = Field(default=30, description='Request timeout in seconds')

    @validator('url')
    def validate_url(cls, v):
        """Validate Azure DevOps URL format."""
        return _validate_http_url(v)

    @validator('organization')
    def validate_organization(cls, v):
        """Validate organization is not blank."""
        if not v.strip():
            raise ValueError('Organization name is required')
        return v.strip()

    @validator('timeout')
    def validate_timeout(cls, v):
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError('Timeout must be positive')
        return v


class GitHubConfig(BaseModel):
    """Configuration for the GitHub target host."""

    url: str = Field(default='https://api.github.com', description='GitHub API URL')
    git_url: str = Field(
        default='https://github.com', description='Base URL for git push operations'
    )
    token: Optional[str] = Field(default=None, description='Personal access token')
    timeout: int = Field(default=30, description='Request timeout in seconds')
    max_retries: int = Field(
        default=3, description='Attempts for repository creation on server errors'
    )
    retry_backoff: float = Field(
        default=1.0, description='Linear backoff step between attempts in seconds'
    )
    private: bool = Field(default=False, description='Create private repositories')
    description: str = Field(
        default='Repository migrated from Azure DevOps',
        description='Description for created repositories',
    )

    @validator('url', 'git_url')
    def validate_url(cls, v):
        """Validate GitHub URL format."""
        return _validate_http_url(v)

    @validator('timeout', 'max_retries')
    def validate_positive(cls, v):
        """Validate value is positive."""
        if v <= 0:
            raise ValueError('Value must be positive')
        return v

    @validator('retry_backoff')
    def validate_backoff(cls, v):
        """Validate backoff is not negative."""
        if v < 0:
            raise ValueError('Retry backoff must not be negative')
        return v


class GitConfig(BaseModel):
    """Git operations configuration."""

    temp_dir: Optional[str] = Field(
        default=None,
        description='Scratch root for migration workspaces. If not specified, uses system temp directory.',
    )
    timeout: int = Field(
        default=3600, description='Git operation timeout in seconds (default: 1 hour)'
    )
    executable: str = Field(default='git', description='Git executable')

    @validator('temp_dir')
    def validate_temp_dir(cls, v):
        """Validate temp directory path."""
        if v is not None and not Path(v).is_absolute():
            raise ValueError('temp_dir must be an absolute path')
        return v

    @validator('timeout')
    def validate_timeout(cls, v):
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError('Git timeout must be positive')
        return v


class SecurityConfig(BaseModel):
    """Credential encryption configuration."""

    encryption_key: Optional[str] = Field(
        default=None, description='Fernet key used to encrypt stored credentials'
    )


class StorageConfig(BaseModel):
    """Migration registry configuration."""

    backend: str = Field(default='memory', description='memory or json')
    path: Optional[str] = Field(default=None, description='JSON store file path')

    @validator('backend')
    def validate_backend(cls, v):
        """Validate storage backend."""
        if v not in ('memory', 'json'):
            raise ValueError('Storage backend must be one of: memory, json')
        return v

    @validator('path', always=True)
    def validate_path(cls, v, values):
        """Require a path for the json backend."""
        if values.get('backend') == 'json' and not v:
            raise ValueError('Storage path is required for the json backend')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Log format')

    @validator('level')
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class for the repository migration tool."""

    source: AzureDevOpsConfig = Field(..., description='Azure DevOps source host')
    target: GitHubConfig = Field(
        default_factory=GitHubConfig, description='GitHub target host'
    )
    git: GitConfig = Field(
        default_factory=GitConfig, description='Git operations settings'
    )
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description='Credential encryption settings'
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig, description='Migration registry settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    class Config:
        """Pydantic configuration."""

        extra = 'forbid'  # Don't allow extra fields

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        # Load .env file if it exists
        load_dotenv()

        config_data = {
            'source': {
                'url': os.getenv('AZURE_DEVOPS_URL'),
                'organization': os.getenv('AZURE_DEVOPS_ORG'),
                'token': os.getenv('AZURE_DEVOPS_TOKEN'),
            },
            'target': {
                'url': os.getenv('GITHUB_API_URL'),
                'token': os.getenv('GITHUB_TOKEN'),
            },
            'git': {
                'temp_dir': os.getenv('GIT_TEMP_DIR'),
                'timeout': int(os.getenv('GIT_TIMEOUT', 3600)),
            },
            'security': {
                'encryption_key': os.getenv('MIGRATION_ENCRYPTION_KEY'),
            },
            'storage': {
                'backend': os.getenv('MIGRATION_STORE', 'memory'),
                'path': os.getenv('MIGRATION_STORE_PATH'),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        # Remove None values
        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                self.dict(), f, default_flow_style=False, indent=2, sort_keys=False
            )


def create_config_template(output_path: str) -> None:
    """Create a configuration template file."""
    template_config = {
        'source': {
            'url': 'https://dev.azure.com',
            'organization': 'your-azure-devops-organization',
            'token': 'your-azure-devops-personal-access-token',
            'api_version': '7.0',
            'timeout': 30,
        },
        'target': {
            'url': 'https://api.github.com',
            'git_url': 'https://github.com',
            'token': 'your-github-personal-access-token',
            'timeout': 30,
            'max_retries': 3,
            'private': False,
        },
        'git': {
            'temp_dir': '/tmp/repo-migration',
            'timeout': 3600,
        },
        'security': {
            'encryption_key': None,
        },
        'storage': {
            'backend': 'json',
            'path': 'migrations.json',
        },
        'logging': {
            'level': 'INFO',
            'file': 'migration.log',
        },
    }

    config_file = Path(output_path)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, 'w', encoding='utf-8') as f:
        yaml.dump(
            template_config, f, default_flow_style=False, indent=2, sort_keys=False
        )
