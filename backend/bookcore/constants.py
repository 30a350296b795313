# -----------------------------
# Reading
# -----------------------------
WORDS_PER_PAGE = 250
MAX_WORDS_PER_PAGE = 320
WORDS_PER_MINUTE = 200
MIN_BLOCK_CHARS = 10
PREVIEW_WORDS = 500

# -----------------------------
# Reviews
# -----------------------------
MIN_RATING = 1
MAX_RATING = 5

# -----------------------------
# Payments
# -----------------------------
PLATFORM_FEE_RATE = 0.10
MIN_TIP_CENTS = 100
AUTHOR_SHARE_PCT = 90
PLATFORM_SHARE_PCT = 10

POLYGON_CHAIN_ID = 137
USDC_CONTRACT_ADDRESS = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
PLATFORM_WALLET_ADDRESS = "0xc32c7deA22f43A44971A73230a1cF8b93DDcA5C9"

# -----------------------------
# Roles and statuses
# -----------------------------
USER_ROLES = ["reader", "writer", "admin", "moderator"]
MODERATOR_ROLES = ["admin", "moderator"]
BOOK_STATUSES = ["draft", "published", "archived"]
PAYMENT_STATUSES = ["pending", "completed", "failed", "refunded"]

# -----------------------------
# Stories
# -----------------------------
REACTION_TYPES = ["heart", "shock", "thumbs-down"]

REACTION_POINTS = {
    "heart": 3,
    "shock": 2,
    "thumbs-down": -1,
}

# -----------------------------
# Gamification
# -----------------------------
READING_SESSION_POINTS = 25
BOOK_COMPLETED_POINTS = 100
REVIEW_POINTS = 50
STORY_PUBLISH_POINTS = 100
POINTS_PER_THOUSAND_WORDS = 100

LEVELS = [
    {"level": 1, "points_required": 0, "title": "Newcomer", "benefits": ["Welcome bonus"]},
    {"level": 2, "points_required": 100, "title": "Reader", "benefits": ["Book recommendations"]},
    {"level": 3, "points_required": 300, "title": "Enthusiast", "benefits": ["Early access to new releases"]},
    {"level": 4, "points_required": 600, "title": "Devoted", "benefits": ["Exclusive content access"]},
    {"level": 5, "points_required": 1000, "title": "Scholar", "benefits": ["Author chat access"]},
    {"level": 6, "points_required": 1500, "title": "Expert", "benefits": ["Beta feature access"]},
    {"level": 7, "points_required": 2200, "title": "Master", "benefits": ["Premium support"]},
    {"level": 8, "points_required": 3000, "title": "Legend", "benefits": ["Custom achievements"]},
    {"level": 9, "points_required": 4000, "title": "Champion", "benefits": ["Platform influence"]},
    {"level": 10, "points_required": 5500, "title": "Grandmaster", "benefits": ["All perks unlocked"]},
]

AUTHOR_LEVELS = [
    {"level": 1, "title": "Aspiring Writer", "points_required": 0, "benefits": ["Basic writing tools"]},
    {"level": 2, "title": "Novice Author", "points_required": 100, "benefits": ["Enhanced editor", "Basic analytics"]},
    {"level": 3, "title": "Published Writer", "points_required": 500, "benefits": ["Advanced formatting", "Reader insights"]},
    {"level": 4, "title": "Established Author", "points_required": 1500, "benefits": ["Priority support", "Featured placement"]},
    {"level": 5, "title": "Bestselling Author", "points_required": 5000, "benefits": ["Premium features", "Author spotlight"]},
    {"level": 6, "title": "Master Writer", "points_required": 15000, "benefits": ["Exclusive tools", "Mentorship opportunities"]},
    {"level": 7, "title": "Literary Legend", "points_required": 50000, "benefits": ["All features", "Legacy status"]},
]

ACHIEVEMENTS = [
    # reading
    {"id": "first-book", "title": "First Steps", "description": "Complete your first book",
     "icon": "📖", "type": "reading", "requirement": 1, "points": 100, "rarity": "common"},
    {"id": "bookworm", "title": "Bookworm", "description": "Read 10 books",
     "icon": "🐛", "type": "reading", "requirement": 10, "points": 500, "rarity": "rare"},
    {"id": "scholar", "title": "Scholar", "description": "Read 25 books",
     "icon": "🎓", "type": "reading", "requirement": 25, "points": 1000, "rarity": "epic"},
    {"id": "master-reader", "title": "Master Reader", "description": "Read 50 books",
     "icon": "👑", "type": "reading", "requirement": 50, "points": 2500, "rarity": "legendary"},
    # writing
    {"id": "first-story-win", "title": "Story Champion", "description": "Win your first daily story competition",
     "icon": "🏆", "type": "writing", "requirement": 1, "points": 1000, "rarity": "rare"},
    {"id": "story-legend", "title": "Story Legend", "description": "Win 3 daily story competitions",
     "icon": "👑", "type": "writing", "requirement": 3, "points": 3000, "rarity": "epic"},
    {"id": "story-master", "title": "Story Master", "description": "Win 10 daily story competitions",
     "icon": "⭐", "type": "writing", "requirement": 10, "points": 10000, "rarity": "legendary"},
    # streak
    {"id": "consistent-reader", "title": "Consistent Reader", "description": "Maintain a 7-day reading streak",
     "icon": "🔥", "type": "streak", "requirement": 7, "points": 200, "rarity": "common"},
    {"id": "dedication", "title": "Dedication", "description": "Maintain a 30-day reading streak",
     "icon": "⚡", "type": "streak", "requirement": 30, "points": 750, "rarity": "rare"},
    {"id": "unstoppable", "title": "Unstoppable", "description": "Maintain a 100-day reading streak",
     "icon": "💫", "type": "streak", "requirement": 100, "points": 2000, "rarity": "legendary"},
    # social
    {"id": "first-review", "title": "Critic", "description": "Write your first book review",
     "icon": "✍️", "type": "social", "requirement": 1, "points": 50, "rarity": "common"},
    {"id": "helpful-reviewer", "title": "Helpful Reviewer", "description": "Write 10 book reviews",
     "icon": "⭐", "type": "social", "requirement": 10, "points": 300, "rarity": "rare"},
    # milestone
    {"id": "point-collector", "title": "Point Collector", "description": "Earn 1,000 points",
     "icon": "💎", "type": "milestone", "requirement": 1000, "points": 0, "rarity": "rare"},
    {"id": "elite-member", "title": "Elite Member", "description": "Reach level 10",
     "icon": "🏆", "type": "milestone", "requirement": 10, "points": 0, "rarity": "epic"},
]

# -----------------------------
# Site
# -----------------------------
SITE_NAME = "Million Dollar eBooks"
SITE_URL = "https://dollarebooks.app"
SITE_LOGO = "https://dollarebooks.app/lovable-uploads/41d6c92c-08df-42d6-abd8-bf3735f498ca.png"

# -----------------------------
# Support
# -----------------------------
SUPPORT_PRIORITIES = ["low", "medium", "high", "urgent"]
SUPPORT_STATUSES = ["open", "in_progress", "resolved", "closed"]
