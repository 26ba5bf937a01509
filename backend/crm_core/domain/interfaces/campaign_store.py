"""
Campaign Store Interface
Persistence for campaigns and their batches.

Outcome and retry bookkeeping are single atomic operations so that
concurrent outcome callbacks for one campaign never lose updates.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from crm_core.domain.models.campaign import (
    BatchOutcome,
    BatchStatus,
    Campaign,
    CampaignBatch,
    CampaignChannel,
    CampaignStatus,
)


class CampaignStore(ABC):
    """Abstract base class for campaign persistence"""

    @abstractmethod
    async def insert_campaign(self, campaign: Campaign) -> Campaign:
        """Persist a new campaign header"""
        pass

    @abstractmethod
    async def insert_batches(self, batches: Sequence[CampaignBatch]) -> int:
        """
        Persist all batches of a campaign in one all-or-nothing write.

        Returns:
            Number of batches persisted
        """
        pass

    @abstractmethod
    async def delete_campaign(self, campaign_id: str) -> None:
        """Delete a campaign and any batches it has"""
        pass

    @abstractmethod
    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        pass

    @abstractmethod
    async def list_campaigns(
        self,
        tenant_id: Optional[str],
        channel: Optional[CampaignChannel] = None,
        status: Optional[CampaignStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        """
        List campaigns newest first.

        Returns:
            (page of campaigns, total matching count)
        """
        pass

    @abstractmethod
    async def get_batch(self, batch_id: str) -> Optional[CampaignBatch]:
        pass

    @abstractmethod
    async def list_batches(self, campaign_id: str) -> List[CampaignBatch]:
        """Batches ordered by batch_number"""
        pass

    @abstractmethod
    async def transition_batch(
        self,
        batch_id: str,
        from_status: BatchStatus,
        to_status: BatchStatus,
    ) -> Optional[CampaignBatch]:
        """
        Conditionally move a batch between states.

        Returns:
            The updated batch, or None if it was not in from_status
        """
        pass

    @abstractmethod
    async def complete_batch(
        self,
        batch_id: str,
        outcome: BatchOutcome,
        processed_at: datetime,
        error_message: Optional[str] = None,
    ) -> Optional[Tuple[CampaignBatch, Campaign]]:
        """
        Record a delivery outcome in one atomic operation.

        Moves the batch processing -> outcome, adds one to the matching
        campaign counter and stamps the campaign completed when every batch
        is terminal. Either all of it is applied or none of it.

        Returns:
            (updated batch, updated campaign), or None if the batch was not
            processing
        """
        pass

    @abstractmethod
    async def reopen_batch(self, batch_id: str) -> Optional[Tuple[CampaignBatch, Campaign]]:
        """
        Move a failed batch back to pending in one atomic operation.

        Clears its error, bumps retry_count and takes it out of
        batches_failed. Refused while the campaign is completed.

        Returns:
            (updated batch, updated campaign), or None if the batch was not
            failed or its campaign is completed
        """
        pass

    @abstractmethod
    async def mark_campaign_in_progress(self, campaign_id: str) -> Optional[Campaign]:
        """pending -> in_progress; None if the campaign was not pending"""
        pass
