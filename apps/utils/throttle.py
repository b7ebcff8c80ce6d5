from rest_framework.throttling import UserRateThrottle


class BurstRateThrottle(UserRateThrottle):
    """
    Short-window cap per user (or per IP when anonymous).
    Scope: 'burst' (API_BURST_RATE)
    """
    scope = 'burst'


class SustainedRateThrottle(UserRateThrottle):
    """
    Hourly cap for integrations that loop over the ledger API.
    """
    scope = 'sustained'
