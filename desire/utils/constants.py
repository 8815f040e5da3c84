"""
desire/utils/constants.py

Purpose: Centralized static content

- User-facing messages surfaced on failures
- Home prompt texts
- Archetype presets and ingredient categories

(Prevents hardcoding across the codebase)
"""

# ============================================================
# HOME PROMPT
# ============================================================

PROMPT_DEFAULT = "What do you desire?"

PROMPT_ALTERNATE = (
    "The potential in your kitchen remains untapped. "
    "We trust you enjoyed your pre-packaged satisfaction."
)

# ============================================================
# ERROR MESSAGES
# ============================================================

MSG_IDENTITY_MISSING = "User ID missing"
MSG_ADD_FAILED = "Failed to add item"
MSG_REMOVE_FAILED = "Failed to remove item"
MSG_SAVE_PANTRY_FAILED = "Failed to save pantry"
MSG_PROFILE_UPDATE_FAILED = "Failed to update user profile"
MSG_AUTH_STATE_FAILED = "Error during authentication state change"
MSG_PROGRESS_SAVE_FAILED = "Failed to save onboarding progress"

# ============================================================
# ONBOARDING PRESETS
# ============================================================

ARCHETYPES = {
    "ascetic": {
        "title": "The Ascetic",
        "description": "Keeps it simple with a handful of staples.",
        "ingredients": ["rice", "beans", "salt", "pepper", "olive oil", "flour"],
    },
    "foundation": {
        "title": "The Foundation",
        "description": "Has the essentials covered.",
        "ingredients": ["flour", "sugar", "salt", "olive oil", "garlic", "eggs"],
    },
    "baker": {
        "title": "The Baker",
        "description": "Loves baking sweet and savoury treats.",
        "ingredients": ["flour", "sugar", "yeast", "butter", "milk", "eggs"],
    },
    "health": {
        "title": "The Health-Conscious",
        "description": "Enjoys wholesome and nutritious meals.",
        "ingredients": ["quinoa", "spinach", "broccoli", "chicken breast", "olive oil", "lentils"],
    },
}

CATEGORY_ITEMS = {
    "Vegetables": ["carrot", "broccoli", "spinach", "tomato", "onion"],
    "Spices": ["salt", "pepper", "cumin", "paprika", "oregano"],
    "Dairy": ["milk", "cheese", "butter", "yogurt"],
    "Grains": ["rice", "pasta", "quinoa", "bread"],
}

# ============================================================
# TIME
# ============================================================

MS_PER_DAY = 24 * 60 * 60 * 1000
