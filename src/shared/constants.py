"""Shared constants across the application."""

# Tab identifiers, in display order
TAB_NEW = "new"
TAB_POPULAR = "popular"
TAB_SALE = "sale"
TAB_UNDER_CAP = "under_cap"
TAB_CITY = "city"

BASE_TABS = [TAB_NEW, TAB_POPULAR, TAB_SALE, TAB_UNDER_CAP]

# Persisted client-side keys
RECENTLY_VIEWED_KEY = "recently_viewed"
CITY_KEY = "zaha_city"
REGION_KEY = "zaha_region"
PINNED_BECAUSE_KEY = "zaha_because_path_v1"

# Rail titles
RECENTLY_VIEWED_TITLE = "Recently viewed"
FOR_YOU_TITLE = "For You"
TRENDING_TITLE = "Trending now"
UNDER_CAP_TITLE = "Under 200 MAD"

# Default limits
DEFAULT_PAGE_SIZE = 24
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
DEFAULT_PRICE_CAP = 200
MAX_RECENTLY_VIEWED = 12
MAX_KEYWORDS = 12

# Time windows
PINNED_PATH_TTL_DAYS = 7
