"""
Payload boundary for hosting services.
Parses raw submissions with pydantic and returns JSON-serializable results; no transport.
"""
