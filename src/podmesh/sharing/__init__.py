"""
podmesh Sharing

Access control and the grant-then-notify share built on top of it.

Components:
- Authorization document codec: Pure rewrite of WAC documents
- Access control manager: Grant and revoke on a remote resource
- Sharing service: Grant access, then announce it in the recipient's inbox

Usage:
    from podmesh.sharing import AccessControlManager, SharingService

    access = AccessControlManager(client)
    await access.grant(resource_url, "https://pod.example/bob/profile/card#me", ["Read"])

    sharing = SharingService(client)
    result = await sharing.share_by_name(resource_url, "Bob", ["Read"], my_web_id, directory_url)
"""

from podmesh.sharing.acl import (
    AclDocument,
    AuthorizationRule,
    RuleBlock,
    add_rule,
    parse,
    remove_rule,
    rule_id_for,
)
from podmesh.sharing.access import AccessControlManager
from podmesh.sharing.share import SharingService

__all__ = [
    # Codec
    "AclDocument",
    "AuthorizationRule",
    "RuleBlock",
    "add_rule",
    "parse",
    "remove_rule",
    "rule_id_for",
    # Access control
    "AccessControlManager",
    # Sharing
    "SharingService",
]
