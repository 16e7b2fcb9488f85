"""Canned data returned in mock mode (offline development and tests)."""

from __future__ import annotations

from genba.chat.blocks import (
    ActionItem,
    ActionsBlock,
    Block,
    StatsBlock,
    StatsItem,
    SuggestBlock,
    TableBlock,
    TextBlock,
)

MOCK_BLOCKS: tuple[Block, ...] = (
    TextBlock(md="渋谷オフィス改修の**今月材料集計**です。"),
    StatsBlock(
        items=[
            StatsItem(label="材料費 今月", value="¥482,300"),
            StatsItem(label="見積差異", value="-¥18,200"),
        ]
    ),
    TableBlock(
        columns=["品名", "数量", "単価", "金額"],
        rows=[
            ["ALCパネル", "24枚", "¥3,200", "¥76,800"],
            ["ボードアンカー(100個)", "2箱", "¥980", "¥1,960"],
        ],
    ),
    ActionsBlock(
        items=[
            ActionItem(
                kind="primary",
                label="請求書を作成",
                action="open_page",
                params={"page": "invoice", "draftId": "inv_2025-01"},
            ),
            ActionItem(
                kind="ghost",
                label="Excel出力",
                action="export_csv",
                params={"type": "materials", "month": "2025-01"},
            ),
        ]
    ),
    SuggestBlock(chips=["見積草案を作る", "材料だけ再計算", "今日の作業を要約"]),
)

MOCK_CSV = "品名,数量,単価,金額\nALCパネル,24,3200,76800\nボードアンカー(100個),2,980,1960\n"

MOCK_PREVIEW_URL = "https://example.com/preview.pdf"
