from django.db import models

BASE_CHAIN_ID = 8453

ONE_TRILLION = 10**12

# Refresh cadence of the provider snapshots, in seconds
BALANCE_REFETCH_INTERVAL = 10
PRICE_REFETCH_INTERVAL = 30
PRICE_CACHE_TTL = 30


class ActivityTypes(models.TextChoices):
    RECEIVE = "receive"
    SEND = "send"
    SWAP = "swap"
    MINT = "mint"
    BURN = "burn"
    APPROVE = "approve"
    CALL = "call"


class TokenCategories(models.TextChoices):
    STABLECOIN = "stablecoin"
    CRYPTO = "crypto"
    YIELD = "yield"
