"""Domain models"""

# Caller scope
from .scope import (
    ComercialRole,
    RoleValue,
    UserScope,
    ComercialPermissions,
)

from .comercial_user import ComercialUser

from .contact import (
    Contact,
    ContactQuery,
    Predicate,
)

# Campaign models
from .campaign import (
    CampaignChannel,
    CampaignStatus,
    BatchStatus,
    BatchOutcome,
    CampaignContactSnapshot,
    Campaign,
    CampaignBatch,
    CampaignContactWithBatch,
)

from .template_mapping import (
    FixedFieldSource,
    CustomFieldSource,
    StaticValueSource,
    TemplateVariableMapping,
)

__all__ = [
    # Scope
    "ComercialRole",
    "RoleValue",
    "UserScope",
    "ComercialPermissions",
    "ComercialUser",
    # Contacts
    "Contact",
    "ContactQuery",
    "Predicate",
    # Campaigns
    "CampaignChannel",
    "CampaignStatus",
    "BatchStatus",
    "BatchOutcome",
    "CampaignContactSnapshot",
    "Campaign",
    "CampaignBatch",
    "CampaignContactWithBatch",
    # Templates
    "FixedFieldSource",
    "CustomFieldSource",
    "StaticValueSource",
    "TemplateVariableMapping",
]
