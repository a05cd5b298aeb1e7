"""Quarterly claim audit engine.

Builds each quarter's review batch, decides who may act on a case, and
moves case audits through the ``PENDING -> IN_PROGRESS -> COMPLETED``
lifecycle with a reopen edge back to ``IN_PROGRESS``.
"""
