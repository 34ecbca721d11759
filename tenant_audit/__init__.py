"""Google Workspace / Cloud tenant audit.

Walks the Admin SDK, Cloud Resource Manager, IAM and Drive APIs with
pagination and quota-aware retries, fans per-item lookups out in bounded
batches, and writes one flattened CSV report per audit.
"""

__version__ = "2023.6.14"
