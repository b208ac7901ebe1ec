"""
Analytics event types.
"""

from enum import StrEnum


class AnalyticsEventType(StrEnum):
    """Type of an ingested analytics event."""

    # Contract-side
    CONTRACT_INTERACTION = "contract_interaction"
    TOKEN_TRANSFER = "token_transfer"
    ASSET_LINKED = "asset_linked"
    ASSET_UNLINKED = "asset_unlinked"
    ASSET_TRANSFERRED = "asset_transferred"
    ROUTE_EXECUTED = "route_executed"
    ROUTE_REGISTERED = "route_registered"
    USER_REGISTERED = "user_registered"
    USER_LOGGED_IN = "user_logged_in"
    USER_LOGGED_OUT = "user_logged_out"
    AIRDROP_CLAIMED = "airdrop_claimed"
    NFT_MINTED = "nft_minted"

    # UI-side
    PAGE_VIEW = "page_view"
    BUTTON_CLICK = "button_click"
    FORM_SUBMISSION = "form_submission"
    WALLET_CONNECTED = "wallet_connected"
    WALLET_DISCONNECTED = "wallet_disconnected"
    ERROR_OCCURRED = "error_occurred"
    FEATURE_USED = "feature_used"
