"""
Tech Race - turn-based research and espionage strategy game.
Round resolution engine plus a thin payload boundary for hosting services.
"""

__version__ = "1.0.0"
