"""
Remote CRM integrations. HubSpot is the only one wired today.
"""

from .hubspot import HubSpotClient, read_json

__all__ = ["HubSpotClient", "read_json"]
