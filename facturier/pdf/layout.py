# facturier/pdf/layout.py
"""
Pagination du tableau d'articles.

Toutes les cotes sont en millimètres, mesurées depuis le haut de la page.

Règles :
- un article n'est jamais coupé entre deux pages ;
- l'en-tête du tableau est répété en tête de chaque page d'articles ;
- le test de place est inclusif (`<=`) ;
- un article qui ne tient pas sous l'en-tête de la page 1 part sur une page de
  suite, la page 1 gardant alors seulement l'en-tête ;
- seul un article trop haut pour une page de suite vide y est placé de force ;
- le cadre « Total HT » suit le tableau s'il tient, sinon il passe sur une
  nouvelle page ; idem pour le bloc paiement + mentions légales.

Le nombre total de pages est calculé à part (`count_pages`) puis comparé au
placement effectif : un écart est une erreur de programmation.
"""
from __future__ import annotations
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from facturier.models.article import Article

# bloc virement, relatif au titre (mm)
PAYMENT_DETAILS_OFFSET = 12.0       # titre -> libellés du compte
PAYMENT_ROW_STEP = 12.0             # 1re -> 2e ligne de libellés
PAYMENT_VALUE_OFFSET = 5.0          # libellé -> valeur
LEGAL_OFFSET = 25.0                 # libellés -> 1re ligne des mentions
LEGAL_LINE_HEIGHT = 4.0
LEGAL_LINE_COUNT = 3
PAYMENT_BLOCK_SPAN = (
    PAYMENT_DETAILS_OFFSET + LEGAL_OFFSET + (LEGAL_LINE_COUNT - 1) * LEGAL_LINE_HEIGHT
)


class PaginationError(RuntimeError):
    """Le décompte des pages ne correspond pas au placement."""


class LayoutMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_limit: float = 255.0       # 285 (ligne de pied) - 30 réservés au pied de page
    bottom_padding: float = 5.0
    first_page_top: float = 155.0      # sous l'en-tête, l'adresse et les dates
    next_page_top: float = 50.0
    table_header_height: float = 10.0
    min_row_height: float = 20.0
    description_line_height: float = 4.0
    row_padding: float = 10.0
    table_gap: float = 10.0            # espace entre le tableau et le Total HT
    summary_height: float = 20.0       # cadre de 12 + espacement
    payment_height: float = PAYMENT_BLOCK_SPAN  # titre du virement -> dernière ligne des mentions

    @property
    def usable_limit(self) -> float:
        return self.content_limit - self.bottom_padding


class PlacedRow(BaseModel):
    index: int                         # position dans la liste d'origine
    y: float
    height: float


class PagePlan(BaseModel):
    number: int
    table_top: Optional[float] = None
    table_bottom: Optional[float] = None
    rows: List[PlacedRow] = Field(default_factory=list)
    summary_y: Optional[float] = None
    payment_y: Optional[float] = None

    @property
    def has_table(self) -> bool:
        return self.table_top is not None


class ItemGroup(BaseModel):
    """Articles d'une page, tels que décidés au remplissage."""
    top: float
    rows: List[PlacedRow] = Field(default_factory=list)
    cursor: float                      # bas du tableau
    summary_fits: Optional[bool] = None


class LayoutPlan(BaseModel):
    metrics: LayoutMetrics
    groups: List[ItemGroup]
    pages: List[PagePlan]
    total_pages: int

    @property
    def summary_on_last_item_page(self) -> bool:
        return bool(self.groups[-1].summary_fits)


def row_height(article: Article, metrics: LayoutMetrics) -> float:
    lines = len(article.description or [])
    return max(metrics.min_row_height, lines * metrics.description_line_height + metrics.row_padding)


def pack_items(heights: Sequence[float], metrics: LayoutMetrics) -> List[ItemGroup]:
    """Remplissage glouton, dans l'ordre ; au moins un groupe (éventuellement vide)."""
    limit = metrics.usable_limit
    header = metrics.table_header_height
    groups: List[ItemGroup] = []

    top = metrics.first_page_top
    cursor = top
    rows: List[PlacedRow] = []

    fresh_room = limit - metrics.next_page_top

    for idx, h in enumerate(heights):
        needed = h + (header if not rows else 0)
        # page 1 sans article : on ne force que si une page de suite ne suffirait pas non plus
        if cursor + needed > limit and (rows or h + header <= fresh_room):
            groups.append(ItemGroup(top=top, rows=rows, cursor=cursor))
            top = cursor = metrics.next_page_top
            rows = []
            needed = h + header
        # page vide : placement forcé, même si l'article dépasse
        rows.append(PlacedRow(index=idx, y=cursor + needed - h, height=h))
        cursor += needed

    if not rows:
        cursor = top + header
    groups.append(ItemGroup(top=top, rows=rows, cursor=cursor))

    last = groups[-1]
    last.summary_fits = (not last.rows) or (last.cursor + metrics.table_gap + metrics.summary_height <= limit)
    return groups


def _payment_fits(summary_y: float, metrics: LayoutMetrics) -> bool:
    return summary_y + metrics.summary_height + metrics.payment_height <= metrics.usable_limit


def count_pages(groups: Sequence[ItemGroup], metrics: LayoutMetrics) -> int:
    total = len(groups)
    last = groups[-1]
    if not last.summary_fits:
        total += 1
        if not _payment_fits(metrics.next_page_top, metrics):
            total += 1
    elif not _payment_fits(last.cursor + metrics.table_gap, metrics):
        total += 1
    return total


def place_pages(groups: Sequence[ItemGroup], metrics: LayoutMetrics) -> List[PagePlan]:
    pages: List[PagePlan] = []
    for i, g in enumerate(groups, start=1):
        if g.rows or len(groups) == 1:
            pages.append(PagePlan(number=i, table_top=g.top, table_bottom=g.cursor, rows=list(g.rows)))
        else:
            # page 1 laissée à l'en-tête, le premier article ne tenait pas dessous
            pages.append(PagePlan(number=i))

    last = groups[-1]
    if last.summary_fits:
        page = pages[-1]
        summary_y = last.cursor + metrics.table_gap
    else:
        page = PagePlan(number=len(pages) + 1)
        pages.append(page)
        summary_y = metrics.next_page_top
    page.summary_y = summary_y

    if _payment_fits(summary_y, metrics):
        page.payment_y = summary_y + metrics.summary_height
    else:
        pages.append(PagePlan(number=len(pages) + 1, payment_y=metrics.next_page_top))
    return pages


def paginate(articles: Sequence[Article], metrics: Optional[LayoutMetrics] = None) -> LayoutPlan:
    metrics = metrics or LayoutMetrics()
    groups = pack_items([row_height(a, metrics) for a in articles], metrics)
    total = count_pages(groups, metrics)
    pages = place_pages(groups, metrics)
    if len(pages) != total:
        raise PaginationError(f"{len(pages)} page(s) placée(s) pour {total} annoncée(s)")
    return LayoutPlan(metrics=metrics, groups=groups, pages=pages, total_pages=total)
