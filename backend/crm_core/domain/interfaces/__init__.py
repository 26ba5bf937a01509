"""Ports to external collaborators"""
from crm_core.domain.interfaces.session_provider import SessionProvider
from crm_core.domain.interfaces.profile_store import ProfileStore, ComercialUserStore
from crm_core.domain.interfaces.contact_store import ContactStore
from crm_core.domain.interfaces.campaign_store import CampaignStore

__all__ = [
    "SessionProvider",
    "ProfileStore",
    "ComercialUserStore",
    "ContactStore",
    "CampaignStore",
]
