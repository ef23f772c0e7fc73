from rate_ledger.client.api_client import APIError, RateAPIClient
from rate_ledger.client.hook import RateHook

__all__ = ["APIError", "RateAPIClient", "RateHook"]
