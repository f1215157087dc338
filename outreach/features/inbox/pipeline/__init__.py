"""
Pure reconciliation steps for inbound email: matching and thread merging.
"""
