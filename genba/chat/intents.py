"""Chat intent router: keyword regex rules plus a negative dictionary.

Rules are tried in declaration order and the first positive hit decides the
intent.  When the same intent also has a matching negative rule the intent is
still returned, at lower confidence and flagged for confirmation, so the
caller can ask instead of guessing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal, get_args

IntentType = Literal[
    "create_report",
    "upload_doc",
    "create_invoice",
    "optimize_estimate",
    "update_progress",
    "open_site_manager",
    "set_billing_mode",
    "unknown",
]
INTENT_TYPES: frozenset[str] = frozenset(get_args(IntentType))

CONFIDENCE_MATCH = 0.9
CONFIDENCE_NEGATIVE_HIT = 0.6
CONFIDENCE_NO_MATCH = 0.2


@dataclass(frozen=True, slots=True)
class IntentRule:
    intent: IntentType
    patterns: tuple[re.Pattern[str], ...]
    negatives: tuple[re.Pattern[str], ...] = field(default=())


@dataclass(frozen=True, slots=True)
class ParsedIntent:
    intent: IntentType
    confidence: float
    matched: str | None
    needs_confirmation: bool = False
    reason: str | None = None


def _rx(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(s) for s in sources)


# Order matters: first matching rule wins.
INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(
        "create_report",
        _rx(r"(日報|今日の分|作業記録|報告)"),
        _rx(r"明日の段取り"),
    ),
    IntentRule(
        "upload_doc",
        _rx(r"(レシート|搬入|納品書|写真登録|書類)"),
        _rx(r"図面を見て"),
    ),
    IntentRule(
        "create_invoice",
        _rx(r"(請求(つくって|発行|ドラフト)?|請求書|月次|締め|請求出す|[0-9]{1,2}月分請求)"),
        _rx(r"見積請求|請求書っぽい"),
    ),
    IntentRule(
        "optimize_estimate",
        _rx(r"(見積(つくって|更新|直して)?|見積書|概算|金額案)"),
        _rx(r"請求.*見積.*比較"),
    ),
    IntentRule(
        "set_billing_mode",
        _rx(r"(請求設定|税抜にして|税込にして|締日を?15日)"),
    ),
    IntentRule(
        "update_progress",
        _rx(r"(進捗|出来高|%更新|％に)"),
    ),
    IntentRule(
        "open_site_manager",
        _rx(r"(現場管理|現場一覧|現場切替|現場変えて)"),
    ),
)


def match_rules(text: str, rules: tuple[IntentRule, ...]) -> ParsedIntent:
    """Classify *text* against an ordered rule list."""
    t = (text or "").strip()
    if not t:
        return ParsedIntent(intent="unknown", confidence=0.0, matched=None)

    for rule in rules:
        for pattern in rule.patterns:
            if not pattern.search(t):
                continue
            if any(neg.search(t) for neg in rule.negatives):
                return ParsedIntent(
                    intent=rule.intent,
                    confidence=CONFIDENCE_NEGATIVE_HIT,
                    matched=pattern.pattern,
                    needs_confirmation=True,
                    reason="negative-hit",
                )
            return ParsedIntent(intent=rule.intent, confidence=CONFIDENCE_MATCH, matched=pattern.pattern)

    return ParsedIntent(intent="unknown", confidence=CONFIDENCE_NO_MATCH, matched=None)


def parse_intent(text: str) -> ParsedIntent:
    return match_rules(text, INTENT_RULES)


def route_intent(text: str) -> ParsedIntent:
    """High-level entry point used by the chat service."""
    return parse_intent(text)
