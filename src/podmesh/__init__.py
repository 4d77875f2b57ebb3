"""
podmesh - Capability sharing between agent pods

Lets autonomous agents that each own a WebID and a pod on a Solid-style
Linked-Data server share resources with one another:
- Sharing: WAC authorization rules granted and revoked per agent
- Notifications: Sharing announcements delivered through inbox containers
- Discovery: A shared directory to find agents by name or capability
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
