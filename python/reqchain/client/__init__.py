"""Client classes and builders."""

from reqchain.client.builder import BaseClientBuilder, ClientBuilder, SyncClientBuilder, client, sync_client
from reqchain.client.client import BaseClient, Client, SyncClient

__all__ = [
    "BaseClient",
    "BaseClientBuilder",
    "Client",
    "ClientBuilder",
    "SyncClient",
    "SyncClientBuilder",
    "client",
    "sync_client",
]
