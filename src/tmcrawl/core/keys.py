"""Shared keys to avoid magic strings across crawl modules."""

from __future__ import annotations

# Request user data keys (camelCase, as stored on engine requests)
K_OFFICE_CODE = "officeCode"
K_PARENT_ID = "parentId"
K_NAVIGATION = "navigation"
K_NAVIGATION_ID = "navigationId"
K_REQUEST_ID = "requestId"
K_FILTER_KEY = "filterKey"
K_FILTER_STRATEGY = "filterStrategy"
K_FILTER_VALUE = "filterValue"
K_PAGE_NUMBER = "pageNumber"
K_REQUEST_DATE = "requestDate"

# Structured store tables
T_COVERAGE = "coverages"
T_MARK = "marks"
T_NAVIGATION = "navigations"

# Artifact kinds
K_CONTENT = "content"
K_SCREENSHOT = "screenshot"
