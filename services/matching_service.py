"""
Matching engine linking supplier items to store records.

Resolution order, first hit wins:
1. Exact SKU (case-insensitive)
2. Exact normalized handle
3. Exact normalized title
4. Fuzzy title: word-set overlap strictly above the threshold
5. No match

Exact tiers always win over fuzzy, so a probabilistic match can never
hide a record the store already links by SKU, handle or title.

match_all() resolves a whole feed one tier at a time: every item gets its
SKU match before any item is tried by handle, so a looser match for an
earlier item cannot claim a record a later item owns by SKU.
"""

from collections import defaultdict
from typing import Collection, Iterable, Optional
import structlog

from models.catalog import DestinationRecord, MatchResult, MatchType, SourceItem
from utils.text_utils import normalize_text

logger = structlog.get_logger(__name__)

DEFAULT_FUZZY_THRESHOLD = 60.0


def word_overlap_ratio(a: str, b: str) -> float:
    """
    Word-set overlap between two normalized strings, in percent.

    |A ∩ B| / max(|A|, |B|) * 100

    Args:
        a: Normalized text
        b: Normalized text

    Returns:
        0.0 - 100.0 (0.0 when either side is empty)
    """
    words_a = set(a.split())
    words_b = set(b.split())
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b)) * 100


class MatchingEngine:
    """
    Indexed view over one store snapshot.

    Built once per run. match() is a pure lookup.
    """

    def __init__(
        self,
        records: Iterable[DestinationRecord],
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    ):
        self.records: list[DestinationRecord] = list(records)
        self.fuzzy_threshold = fuzzy_threshold

        self.by_sku: dict[str, list[DestinationRecord]] = defaultdict(list)
        self.by_handle: dict[str, list[DestinationRecord]] = defaultdict(list)
        self.by_title: dict[str, list[DestinationRecord]] = defaultdict(list)
        self._titles: dict[str, str] = {}

        for record in self.records:
            if record.sku:
                self.by_sku[record.sku.strip().lower()].append(record)
            handle = normalize_text(record.handle)
            if handle:
                self.by_handle[handle].append(record)
            title = normalize_text(record.title)
            self._titles[record.id] = title
            if title:
                self.by_title[title].append(record)

        logger.debug(
            "matching_indexes_built",
            records=len(self.records),
            skus=len(self.by_sku),
            handles=len(self.by_handle),
            titles=len(self.by_title)
        )

    @staticmethod
    def _first_available(
        candidates: list[DestinationRecord],
        consumed: Collection[str],
    ) -> Optional[DestinationRecord]:
        for record in candidates:
            if record.id not in consumed:
                return record
        return None

    def match(
        self,
        item: SourceItem,
        consumed: Collection[str] = (),
        fuzzy: bool = True,
    ) -> MatchResult:
        """
        Resolve one source item.

        Args:
            item: Supplier item
            consumed: Record ids already claimed in this run; invisible to
                every tier
            fuzzy: Fall back to fuzzy title matching when no exact tier hits

        Returns:
            MatchResult (match_type NONE when nothing qualifies)
        """
        for match_type in self._tiers(fuzzy):
            result = self._match_tier(item, match_type, consumed)
            if result.matched:
                return result
        return MatchResult()

    def match_all(self, items: list[SourceItem], fuzzy: bool = True) -> list[MatchResult]:
        """
        Resolve a whole feed, each record linked to at most one item.

        Runs one pass per tier over every unresolved item, in feed order, so
        an item's SKU match is claimed before any other item's handle, title
        or fuzzy match is considered.

        Returns:
            One MatchResult per item, in the same order as items
        """
        results = [MatchResult() for _ in items]
        consumed: set[str] = set()

        for match_type in self._tiers(fuzzy):
            for position, item in enumerate(items):
                if results[position].matched:
                    continue
                result = self._match_tier(item, match_type, consumed)
                if result.matched:
                    consumed.add(result.record.id)
                    results[position] = result

        return results

    @staticmethod
    def _tiers(fuzzy: bool) -> tuple[MatchType, ...]:
        tiers = (MatchType.SKU, MatchType.HANDLE, MatchType.TITLE)
        return tiers + (MatchType.TITLE_FUZZY,) if fuzzy else tiers

    def _match_tier(
        self,
        item: SourceItem,
        match_type: MatchType,
        consumed: Collection[str],
    ) -> MatchResult:
        if match_type == MatchType.TITLE_FUZZY:
            return self._fuzzy_match(item, consumed)

        index, key = {
            MatchType.SKU: (self.by_sku, item.sku.strip().lower()),
            MatchType.HANDLE: (self.by_handle, normalize_text(item.handle)),
            MatchType.TITLE: (self.by_title, item.normalized_title),
        }[match_type]
        if not key:
            return MatchResult()

        record = self._first_available(index.get(key, []), consumed)
        if record is None:
            return MatchResult()
        return MatchResult(record=record, match_type=match_type)

    def _fuzzy_match(self, item: SourceItem, consumed: Collection[str]) -> MatchResult:
        best: Optional[DestinationRecord] = None
        best_score = 0.0

        if item.normalized_title:
            for record in self.records:
                if record.id in consumed:
                    continue
                score = word_overlap_ratio(item.normalized_title, self._titles[record.id])
                if score > best_score:
                    best, best_score = record, score

        if best is not None and best_score > self.fuzzy_threshold:
            return MatchResult(
                record=best,
                match_type=MatchType.TITLE_FUZZY,
                confidence=best_score,
            )

        return MatchResult()
