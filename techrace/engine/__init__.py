"""
Tech Race Round Engine
Core engine without web framework, database, or UI
"""

# Basic research and espionage roll a plain die of this size.
DICE_SIDES = 6

# Role that administers the game (opens rounds, force-resolves) but holds no team state.
GM_ROLE = "GM"
