"""
Design Production Tracker dashboard client

Keeps a dashboard working set in sync with the tracker API: refreshes
requests and their status history, applies optimistic status changes and
reverts them when the server rejects them.
"""

__version__ = "0.1.0"
