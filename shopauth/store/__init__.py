"""Credential store backends for shopauth."""

from shopauth.store.base import AccountStore
from shopauth.store.memory import InMemoryAccountStore
from shopauth.store.s3 import S3AccountStore

__all__ = [
    "AccountStore",
    "InMemoryAccountStore",
    "S3AccountStore",
]
