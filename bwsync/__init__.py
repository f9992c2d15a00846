"""bwsync: Bitwarden organization groups and members as declared state.

To use the API client library:
    from bwsync.core.bitwarden import AuthSession, BitwardenClient, GroupService

To reconcile resources:
    from bwsync.core.reconciler import group_engine, member_engine
"""

__version__ = "0.1.0"
