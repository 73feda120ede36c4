"""Database models for the Marketplace Audit platform"""

from marketplace_audit.models.customer import MarketplaceCustomer

from marketplace_audit.models.sync import (
    SyncJob,
    BackfillStatus,
    SyncRun
)

from marketplace_audit.models.snapshot import (
    RawSnapshot,
    Analysis
)

from marketplace_audit.models.advertising import (
    CampaignPerformance,
    KeywordPerformance
)

from marketplace_audit.models.competitor import (
    CompetitorSnapshot,
    KeywordRanking
)
