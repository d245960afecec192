"""
Link-following operations, one module per CTMS domain.

Each operation takes the client first, then either the session
ResourceStore (registry relations) or a previously fetched document whose
links decide what is possible.
"""
