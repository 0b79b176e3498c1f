"""Errors raised while locating or reading a LinkedHelper account database."""


class DatabaseError(Exception):
    """Base class for database errors."""


class DatabaseNotFoundError(DatabaseError):
    """No database file exists for the account."""

    def __init__(self, account_id: int):
        super().__init__(f"No LinkedHelper database found for account {account_id}")
        self.account_id = account_id


class CampaignNotFoundError(DatabaseError):
    def __init__(self, campaign_id: int):
        super().__init__(f"Campaign not found: {campaign_id}")
        self.campaign_id = campaign_id
