"""Use-case level logic.

These modules implement the dashboard's record handling (tab resolution, row
lookup, field mapping, table moves, bulk updates, tenant routing) on top of the
data access provided by integrations (Google Sheets, auth provider).

They should be:
- unit-testable against an in-memory sheets backend
- free of web/framework code
"""
