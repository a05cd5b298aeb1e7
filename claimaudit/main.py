from claimaudit.api.main import app

__all__ = ["app"]
