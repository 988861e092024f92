"""Credential handling."""

from .credentials import CredentialUnwrapper

__all__ = ['CredentialUnwrapper']
