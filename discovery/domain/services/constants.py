# Full-text scoring weights (Atlas Search boosts); the fuzzy name match is the 1.0 base
NAME_PHRASE_BOOST = 2.0
DESCRIPTION_BOOST = 1.5
CATEGORY_NAME_BOOST = 1.2
FUZZY_MAX_EXPANSIONS = 50

# Highlighted fields and the marker wrapped around matched fragments
HIGHLIGHT_FIELDS = ("name", "description", "category_name")
HIGHLIGHT_PRE_TAG = "<em>"
HIGHLIGHT_POST_TAG = "</em>"

# Score given to every item served by the record-store fallback
FALLBACK_SCORE = 1.0

# Backend names (logged, and folded into cache keys)
BACKEND_FULLTEXT = "fulltext"
BACKEND_SUBSTRING = "substring"

# Similarity banding
PRICE_BAND_RATIO = 0.2      # +-20% of the seed price
RATING_BAND = 0.5           # +-0.5 stars, clamped to [0, 5]
MIN_RATING = 0.0
MAX_RATING = 5.0
DEFAULT_SIMILAR_LIMIT = 8
MAX_SIMILAR_LIMIT = 50

# View statistics
TOP_VIEWED_LIMIT = 5
MAX_HISTORY_DAYS = 365

# Range facets: (key, label, min, max inclusive or None)
VIEW_COUNT_RANGES = (
    ("low_views", "Under 1,000 views", 0, 999),
    ("medium_views", "1,000 - 5,000 views", 1000, 5000),
    ("high_views", "Over 5,000 views", 5001, None),
)
DISCOUNT_RANGES = (
    ("any", "Any discount", 0.01, None),
    ("low", "Under 10% off", 0.01, 9.99),
    ("medium", "10% - 20% off", 10, 20),
    ("high", "Over 20% off", 20.01, None),
)
