"""Chat core: intent routing, drafts, money maths and commit handlers."""

from genba.chat.intents import ParsedIntent, parse_intent, route_intent

__all__ = ["ParsedIntent", "parse_intent", "route_intent"]
