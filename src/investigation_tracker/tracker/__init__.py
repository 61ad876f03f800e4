"""Investigation-tracking core.

Provides:
- the queue, the investigation ledger and the worker liveness marker
- the catch-up scan over a repository's open issues
- worker supervision
- event handlers for direct requests, new issues and new comments
"""
