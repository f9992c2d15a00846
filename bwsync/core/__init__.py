"""Core Logic Module

Module Structure:
    - bitwarden/      : Bitwarden Public API client library (auth, transport, services, models)
    - reconciler.py   : Reconciliation engine converging tracked records with the API

Usage Pattern:
    Import explicitly when needed:
        from bwsync.core.bitwarden import AuthSession, BitwardenClient, Group, Member
        from bwsync.core.reconciler import ReconciliationEngine, group_engine, member_engine
"""
