"""Client-side state reconciliation for gas-safety forms.

Draft auto-save and restoration, a TTL cache with stale-while-revalidate
reads, and optimistic list mutations with rollback.
"""

__version__ = "0.1.0"
