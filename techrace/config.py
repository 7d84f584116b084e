"""
Single place for default game configuration.
Change DEFAULT_RULESET_ID to switch which ruleset is used when creating a new game (when no ruleset_id is provided).
"""
# Ruleset id from data/rulesets/<id>/rules.json. This is the default for new games.
DEFAULT_RULESET_ID = "default"
