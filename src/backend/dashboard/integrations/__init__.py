"""Integration adapters for external systems (Google Sheets, auth provider).

Keep these modules small and testable:
- No FastAPI request/response objects
- No routing or access-control decisions
- Pure IO + parsing helpers
"""
