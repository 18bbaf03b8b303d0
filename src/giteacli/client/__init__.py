"""HTTP client for the Gitea REST API.

Example::

    from giteacli.client import GiteaClient

    with GiteaClient(record.url, token, insecure=record.insecure) as client:
        user = client.get_my_user_info()
"""

from giteacli.client.api_client import GiteaClient

__all__ = ["GiteaClient"]
