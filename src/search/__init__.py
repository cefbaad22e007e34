"""Smart search for SQL performance statistics.

The search layer converts a Korean (or mixed Korean/English) free-text query into strict
`SearchFilters` using prioritized regex rules, and maps those filters onto the SQL list page's
query parameters.
"""
