"""NPM registry package.

- client.py: published-version lookup over HTTP and ``npm publish``

Patch points for tests are the names re-exported here.
"""

from .client import (  # noqa: F401
    PublishConfirmation,
    RegistryInfo,
    info_allow_404,
    package_url,
    publish,
)

__all__ = [
    "PublishConfirmation",
    "RegistryInfo",
    "info_allow_404",
    "package_url",
    "publish",
]
