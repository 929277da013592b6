"""
Customer Status Poller Package

Snapshot/diff detector that turns customer status rows into transition events.
"""
