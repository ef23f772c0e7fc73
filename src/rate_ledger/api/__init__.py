from rate_ledger.api.app import create_app

__all__ = ["create_app"]
