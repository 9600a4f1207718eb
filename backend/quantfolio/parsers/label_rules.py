"""
Label tables for the strategy tester report.

The tester writes labels and values into different columns depending on the
report language and version. Everything locale-specific lives here so a new
report variant is a table edit, not a parser change.

Labels are matched against the lower-cased cell text with the trailing colon
removed. A rule matches when every token of at least one of its alternatives is
a substring of the label and none of its excluded tokens is.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

ValueKind = Literal["text", "number", "count", "abs_number", "drawdown", "drawdown_percent"]


@dataclass(frozen=True)
class LabelRule:
    field: str
    alternatives: tuple[tuple[str, ...], ...]
    kind: ValueKind = "number"
    exclude: tuple[str, ...] = ()

    def matches(self, label: str) -> bool:
        if not label or any(token in label for token in self.exclude):
            return False
        return any(all(token in label for token in alternative) for alternative in self.alternatives)


# Label column -> value columns tried in order. Column 0 is the main block,
# columns 4 and 8 are the left and right side panels.
SUMMARY_VALUE_OFFSETS: dict[int, tuple[int, ...]] = {
    0: (1, 3),
    4: (7, 5, 6),
    8: (11, 9, 10),
}

METADATA_SCAN_ROWS = 30
METADATA_VALUE_COLUMNS: tuple[int, ...] = (1, 3)

MAGIC_LABEL_TOKENS = ("magic", "expert id", "ea id", "numer magiczny")
EXPERT_LABEL_TOKENS = ("expert", "ekspert")
PARAMETER_LABEL_TOKENS = ("inputs", "input", "parameters", "parametry", "wejścia", "parametry wejściowe")
MAGIC_ASSIGNMENT_RE = re.compile(r"magic\w*\s*[=:]\s*(\d+)", re.IGNORECASE)

METADATA_RULES: tuple[LabelRule, ...] = (
    LabelRule("currency", (("currency",), ("waluta",)), kind="text"),
    LabelRule("deposit_currency", (("deposit",), ("depozyt",)), kind="text"),
    LabelRule("broker", (("broker",), ("company",), ("firma",)), kind="text"),
    LabelRule("account_number", (("account",), ("konto",), ("rachunek",)), kind="text", exclude=("currency", "waluta")),
    LabelRule("leverage", (("leverage",), ("dźwignia",), ("dzwignia",)), kind="text"),
    LabelRule("custom_comment", (("comment",), ("komentarz",)), kind="text"),
)

CURRENCY_CODE_RE = re.compile(r"\b([A-Z]{3})\b")
LEVERAGE_RE = re.compile(r"1\s*:\s*(\d+)")

# Ordered most specific first; the first matching rule claims the label.
SUMMARY_RULES: tuple[LabelRule, ...] = (
    LabelRule("symbol", (("symbol",), ("instrument",)), kind="text"),
    LabelRule("period", (("period",), ("okres",)), kind="text"),
    LabelRule("model_type", (("model",),), kind="text"),
    LabelRule("initial_deposit", (("initial deposit",), ("depozyt początkowy",), ("depozyt poczatkowy",))),
    LabelRule("total_net_profit", (("total net profit",), ("net profit",), ("zysk netto",), ("całkowity zysk netto",))),
    LabelRule("total_gross_profit", (("gross profit",), ("zysk brutto",)), exclude=("loss", "strata")),
    LabelRule("total_gross_loss", (("gross loss",), ("strata brutto",)), kind="abs_number"),
    LabelRule("profit_factor", (("profit factor",), ("współczynnik zysku",), ("wspolczynnik zysku",))),
    LabelRule("expected_payoff", (("expected payoff",), ("oczekiwana wypłata",), ("oczekiwana wyplata",))),
    LabelRule("recovery_factor", (("recovery factor",), ("współczynnik odzyskania",))),
    LabelRule("sharpe_ratio", (("sharpe",),)),
    LabelRule(
        "absolute_drawdown",
        (("absolute drawdown",), ("drawdown absolute",), ("obsunięcie", "absolutne"), ("obsuniecie", "absolutne")),
        kind="abs_number",
    ),
    LabelRule(
        "maximal_drawdown_percent",
        (("maximal drawdown", "%"), ("drawdown maximal", "%"), ("obsunięcie", "maksymalne", "%")),
        kind="drawdown_percent",
    ),
    LabelRule(
        "maximal_drawdown",
        (("maximal drawdown",), ("drawdown maximal",), ("maximum drawdown",), ("obsunięcie", "maksymalne"), ("obsuniecie", "maksymalne")),
        kind="drawdown",
    ),
    LabelRule(
        "relative_drawdown_percent",
        (("relative drawdown", "%"), ("drawdown relative", "%"), ("obsunięcie", "względne", "%")),
        kind="drawdown_percent",
    ),
    LabelRule(
        "relative_drawdown",
        (("relative drawdown",), ("drawdown relative",), ("obsunięcie", "względne"), ("obsuniecie", "wzgledne")),
        kind="drawdown",
    ),
    LabelRule("total_trades", (("total trades",), ("total deals",), ("wszystkie transakcje",), ("łącznie transakcji",)), kind="count"),
    LabelRule("short_positions", (("short", "won"), ("krótkie",), ("krotkie",)), kind="count"),
    LabelRule("long_positions", (("long", "won"), ("długie",), ("dlugie",)), kind="count"),
    LabelRule(
        "largest_profit_trade",
        (("largest", "profit"), ("największa", "zysk"), ("najwieksza", "zysk")),
    ),
    LabelRule(
        "largest_loss_trade",
        (("largest", "loss"), ("największa", "strat"), ("najwieksza", "strat")),
        kind="abs_number",
    ),
    LabelRule(
        "average_profit_trade",
        (("average", "profit trade"), ("średnia", "transakcja", "zysk"), ("srednia", "transakcja", "zysk")),
    ),
    LabelRule(
        "average_loss_trade",
        (("average", "loss trade"), ("średnia", "transakcja", "strat"), ("srednia", "transakcja", "strat")),
        kind="abs_number",
    ),
    LabelRule("profit_trades", (("profit trades",), ("transakcje z zyskiem",), ("zyskowne transakcje",)), kind="count"),
    LabelRule("loss_trades", (("loss trades",), ("transakcje ze stratą",), ("transakcje ze strata",), ("stratne transakcje",)), kind="count"),
    LabelRule(
        "max_consecutive_wins",
        (("maximum consecutive wins",), ("kolejnych wygranych", "maksymalna")),
        kind="count",
    ),
    LabelRule(
        "max_consecutive_losses",
        (("maximum consecutive losses",), ("kolejnych przegranych", "maksymalna")),
        kind="count",
    ),
    LabelRule("max_consecutive_profit", (("maximal consecutive profit",), ("maksymalny kolejny zysk",))),
    LabelRule(
        "max_consecutive_loss",
        (("maximal consecutive loss",), ("maksymalna kolejna strata",)),
        kind="abs_number",
    ),
    LabelRule(
        "average_consecutive_wins",
        (("average consecutive wins",), ("kolejnych wygranych", "średnia"), ("kolejnych wygranych", "srednia")),
    ),
    LabelRule(
        "average_consecutive_losses",
        (("average consecutive losses",), ("kolejnych przegranych", "średnia"), ("kolejnych przegranych", "srednia")),
    ),
)

# Deals table
DEALS_SECTION_TOKENS = ("deals", "transactions", "transakcje", "deals history")
ORDERS_SECTION_TOKENS = ("orders", "zlecenia")
HEADER_FIRST_CELL_TOKENS = ("time", "czas", "#", "ticket", "deal")

# Fixed layout used when the header cannot be mapped by name.
DEFAULT_DEAL_COLUMNS: dict[str, int] = {
    "open_time": 0,
    "ticket": 1,
    "symbol": 2,
    "side": 3,
    "volume": 4,
    "open_price": 5,
    "commission": 6,
    "swap": 7,
    "profit": 8,
    "balance": 9,
    "comment": 10,
}

# Header name tokens per column. "time" and "price" may appear twice; the first
# occurrence is the open value, the second the close value.
DEAL_HEADER_TOKENS: dict[str, tuple[str, ...]] = {
    "time": ("time", "czas"),
    "ticket": ("deal", "ticket", "transakcja", "pozycja", "position", "#"),
    "symbol": ("symbol",),
    "side": ("type", "typ"),
    "direction": ("direction", "kierunek"),
    "volume": ("volume", "wolumen"),
    "price": ("price", "cena"),
    "sl": ("s / l", "s/l", "sl"),
    "tp": ("t / p", "t/p", "tp"),
    "commission": ("commission", "prowizja"),
    "swap": ("swap",),
    "profit": ("profit", "zysk"),
    "balance": ("balance", "saldo"),
    "comment": ("comment", "komentarz"),
}

SIDE_TOKENS: tuple[tuple[str, str], ...] = (
    ("buy", "BUY"),
    ("kupno", "BUY"),
    ("sell", "SELL"),
    ("sprzeda", "SELL"),
    ("balance", "BALANCE"),
    ("saldo", "BALANCE"),
    ("credit", "CREDIT"),
    ("kredyt", "CREDIT"),
)

DIRECTION_IN_TOKENS = ("in", "wejście", "wejscie")
DIRECTION_OUT_TOKENS = ("out", "wyjście", "wyjscie", "out by")
# Netting accounts close the open position and open the opposite one in a single deal.
DIRECTION_REVERSAL_TOKENS = ("in/out", "in out", "wejście/wyjście", "wejscie/wyjscie")
