"""Document comparison for detecting copied text between case participants.

compare_documents() scores one pair of attributed documents:
  1. Standard legal formulas are removed from working copies
  2. Working copies are normalized (lowercase, no punctuation)
  3. Text similarity is the normalized Levenshtein similarity
  4. Sentences of at least min_match_length characters are compared
     pairwise; pairs above FRAGMENT_SIMILARITY become matched fragments
  5. Page images are compared when a visual comparator is available
  6. The pair is suspicious on high text or visual similarity, or on
     many matched fragments

Every function here is a pure function of its two inputs, so pairs can
be scored on parallel workers.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from itertools import combinations
from pathlib import Path
from typing import Callable, Iterable

from rapidfuzz.distance import Levenshtein

from case_forensics.compare.attribution import AuthorAttribution
from case_forensics.compare.visual import VisualComparator
from case_forensics.models import (
    Comparison,
    ComparisonOptions,
    DocumentRef,
    MatchedFragment,
    Page,
)

logger = logging.getLogger(__name__)

# Sentence similarity above which a sentence pair is a matched fragment
FRAGMENT_SIMILARITY = 80.0
# Matched fragments that make a pair suspicious regardless of thresholds
SUSPICIOUS_FRAGMENT_COUNT = 5
# Matched fragments that indicate systematic copying
SYSTEMATIC_FRAGMENT_COUNT = 10
CRITICAL_SIMILARITY = 90.0
HIGH_SIMILARITY = 70.0

_SENTENCE_END_RE = re.compile(r"[.!?]\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")

ROUTINE_REVIEW = "Documents differ sufficiently. Routine check."

PageRenderer = Callable[[str, int], Path]


def remove_templates(text: str, templates: Iterable[str]) -> str:
    """Remove standard legal formulas (case-insensitive)."""
    for template in templates:
        text = re.sub(re.escape(template), "", text, flags=re.IGNORECASE)
    return text


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = _PUNCTUATION_RE.sub("", text.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def text_similarity(text1: str, text2: str) -> float:
    """Levenshtein similarity of two strings as a percentage.

    Symmetric; 0 if either string is empty, 100 for identical strings.
    """
    if not text1 or not text2:
        return 0.0
    max_length = max(len(text1), len(text2))
    distance = Levenshtein.distance(text1, text2)
    return round((max_length - distance) / max_length * 100, 2)


def split_sentences(text: str) -> list[tuple[str, int, int]]:
    """Split text on sentence-terminal punctuation.

    Returns:
        (sentence, start, end) triples; ``text[start:end] == sentence``.
    """
    sentences = []
    start = 0
    for match in _SENTENCE_END_RE.finditer(text):
        sentences.append((text[start:match.start()], start, match.start()))
        start = match.end()
    sentences.append((text[start:], start, len(text)))
    return sentences


def comparison_id(doc1: DocumentRef, doc2: DocumentRef) -> str:
    return (
        f"{doc1.volume_number}_{doc1.page_range[0]}_vs_"
        f"{doc2.volume_number}_{doc2.page_range[0]}"
    )


class ComparisonEngine:
    """Scores document pairs and finds suspicious copies.

    Args:
        visual_comparator: Optional image-pair similarity capability.
        page_renderer: Renders (pdf_path, page) to an image for documents
            that carry no image path.
        workers: Maximum parallel comparisons in find_suspicious_pairs.
    """

    def __init__(
        self,
        visual_comparator: VisualComparator | None = None,
        page_renderer: PageRenderer | None = None,
        workers: int = 4,
    ):
        self.visual_comparator = visual_comparator
        self.page_renderer = page_renderer
        self.workers = max(1, workers)

    # ------------------------------------------------------------------ #
    #  Pair scoring                                                       #
    # ------------------------------------------------------------------ #

    def _working_copy(self, text: str, options: ComparisonOptions) -> str:
        if options.ignore_templates:
            text = remove_templates(text, options.templates)
        return normalize_text(text)

    def find_matched_fragments(
        self, text1: str, text2: str, options: ComparisonOptions
    ) -> list[MatchedFragment]:
        """Find sentences of text1 that appear nearly verbatim in text2.

        Sentences are cut from the original texts, so fragment positions
        index into them. Similarity is scored on working copies.
        """
        min_length = options.min_match_length
        candidates2 = [
            (self._working_copy(sentence, options), start, end)
            for sentence, start, end in split_sentences(text2)
            if len(sentence) >= min_length
        ]

        fragments = []
        for sentence1, start1, end1 in split_sentences(text1):
            if len(sentence1) < min_length:
                continue
            working1 = self._working_copy(sentence1, options)
            for working2, start2, end2 in candidates2:
                if text_similarity(working1, working2) > FRAGMENT_SIMILARITY:
                    fragments.append(
                        MatchedFragment(
                            text=sentence1,
                            position1=(start1, end1),
                            position2=(start2, end2),
                        )
                    )
        return fragments

    def _image_for(self, doc: DocumentRef) -> Path | None:
        if doc.image_path:
            return Path(doc.image_path)
        if doc.pdf_path and self.page_renderer is not None:
            return self.page_renderer(doc.pdf_path, doc.page_range[0])
        return None

    def compare_visually(self, doc1: DocumentRef, doc2: DocumentRef) -> float | None:
        """Visual similarity of the first pages, or None if unavailable."""
        if self.visual_comparator is None:
            logger.debug("No visual comparator configured")
            return None

        try:
            image1 = self._image_for(doc1)
            image2 = self._image_for(doc2)
            if image1 is None or image2 is None:
                return None
            return self.visual_comparator.compare(image1, image2)
        except Exception as e:
            logger.warning(f"Visual comparison of {comparison_id(doc1, doc2)} failed: {e}")
            return None

    @staticmethod
    def is_suspicious(
        similarity: float,
        visual_similarity: float | None,
        fragment_count: int,
        options: ComparisonOptions,
    ) -> bool:
        if similarity >= options.suspicious_text_threshold:
            return True
        if (
            visual_similarity is not None
            and visual_similarity >= options.suspicious_visual_threshold
        ):
            return True
        return fragment_count >= SUSPICIOUS_FRAGMENT_COUNT

    @staticmethod
    def suspicious_reason(
        similarity: float,
        visual_similarity: float | None,
        fragment_count: int,
        author1: str,
        author2: str,
    ) -> str | None:
        reasons = []
        if similarity >= HIGH_SIMILARITY:
            reasons.append(f"High textual overlap: {similarity:.1f}%")
        if visual_similarity is not None and visual_similarity >= HIGH_SIMILARITY:
            reasons.append(f"High visual overlap: {visual_similarity:.1f}%")
        if fragment_count >= SUSPICIOUS_FRAGMENT_COUNT:
            reasons.append(f"{fragment_count} matching fragments found")

        if not reasons:
            return None
        return (
            f"Possible copying between documents of {author1} and {author2}. "
            f"{'. '.join(reasons)}."
        )

    @staticmethod
    def human_review(
        suspicious: bool,
        similarity: float,
        fragment_count: int,
        author1: str,
        author2: str,
    ) -> str:
        if not suspicious:
            return ROUTINE_REVIEW

        if similarity >= CRITICAL_SIMILARITY:
            return (
                f"CRITICAL: near-identical copy. The document of {author2} is practically "
                f"identical to the document of {author1}, which may indicate a formal "
                f"approach without independent verification. Study both documents and "
                f"the circumstances of their preparation."
            )
        if similarity >= HIGH_SIMILARITY:
            return (
                f"WARNING: high similarity ({similarity:.1f}%). The document of {author2} "
                f"borrows substantially from the document of {author1}. Verify that "
                f"{author2} did the work independently."
            )
        if fragment_count >= SYSTEMATIC_FRAGMENT_COUNT:
            return (
                f"WARNING: {fragment_count} matching fragments between the documents. "
                f"This may indicate a systematic copying pattern. Careful review required."
            )
        return (
            f"Suspicious matches between the documents of {author1} and {author2}. "
            f"Manual review recommended."
        )

    def compare_documents(
        self,
        doc1: DocumentRef,
        doc2: DocumentRef,
        options: ComparisonOptions,
    ) -> Comparison:
        """Score one document pair.

        Args:
            doc1: First document
            doc2: Second document
            options: Thresholds and template settings

        Returns:
            Comparison carrying scores, fragments and the verdict.
        """
        similarity = text_similarity(
            self._working_copy(doc1.text, options),
            self._working_copy(doc2.text, options),
        )
        fragments = self.find_matched_fragments(doc1.text, doc2.text, options)

        visual_similarity = None
        if options.use_multimodal:
            visual_similarity = self.compare_visually(doc1, doc2)

        suspicious = self.is_suspicious(similarity, visual_similarity, len(fragments), options)

        return Comparison(
            id=comparison_id(doc1, doc2),
            document1=doc1,
            document2=doc2,
            text_similarity=similarity,
            visual_similarity=visual_similarity,
            matched_fragments=fragments,
            is_suspicious=suspicious,
            suspicious_reason=self.suspicious_reason(
                similarity, visual_similarity, len(fragments), doc1.author, doc2.author
            ),
            human_review=self.human_review(
                suspicious, similarity, len(fragments), doc1.author, doc2.author
            ),
        )

    # ------------------------------------------------------------------ #
    #  Bulk sweep                                                         #
    # ------------------------------------------------------------------ #

    @staticmethod
    def group_documents(
        pages: Iterable[Page],
        attribution: AuthorAttribution | None = None,
        volume_paths: dict[int, str] | None = None,
    ) -> dict[str, list[DocumentRef]]:
        """Group pages into documents per author.

        Consecutive pages of one volume with the same author form one
        document. Pages without an author are skipped.
        """
        volume_paths = volume_paths or {}
        by_author: dict[str, list[DocumentRef]] = {}
        current: DocumentRef | None = None
        texts: list[str] = []

        def flush():
            if current is not None:
                current.text = "\n".join(texts)
                by_author.setdefault(current.author, []).append(current)

        for page in sorted(pages, key=lambda p: (p.volume_number, p.page_number)):
            if attribution is not None:
                author = attribution.author_for(page.volume_number, page.page_number)
            else:
                author = page.metadata.author
            if not author:
                continue

            if (
                current is not None
                and current.author == author
                and current.volume_number == page.volume_number
                and current.page_range[1] + 1 == page.page_number
            ):
                current.page_range = (current.page_range[0], page.page_number)
                texts.append(page.text)
                continue

            flush()
            current = DocumentRef(
                volume_number=page.volume_number,
                page_range=(page.page_number, page.page_number),
                author=author,
                text="",
                pdf_path=volume_paths.get(page.volume_number),
                image_path=page.image_path,
            )
            texts = [page.text]

        flush()
        return by_author

    def find_suspicious_pairs(
        self,
        pages: Iterable[Page],
        options: ComparisonOptions,
        attribution: AuthorAttribution | None = None,
        volume_paths: dict[int, str] | None = None,
    ) -> list[Comparison]:
        """Compare every cross-author document pair.

        Args:
            pages: Pages to compare
            options: Thresholds and template settings
            attribution: Author of each page; falls back to the author
                stored on the page
            volume_paths: PDF path per volume number, for visual comparison

        Returns:
            Suspicious comparisons, highest text similarity first.
        """
        by_author = self.group_documents(pages, attribution, volume_paths)
        if len(by_author) < 2:
            logger.warning(
                f"Need documents of at least two authors to compare, found {len(by_author)}"
            )
            return []

        pairs = [
            (doc1, doc2)
            for author1, author2 in combinations(sorted(by_author), 2)
            for doc1 in by_author[author1]
            for doc2 in by_author[author2]
        ]
        logger.info(f"Comparing {len(pairs)} document pairs across {len(by_author)} authors")

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            results = list(
                executor.map(lambda pair: self.compare_documents(*pair, options), pairs)
            )

        suspicious = [c for c in results if c.is_suspicious]
        suspicious.sort(key=lambda c: c.text_similarity, reverse=True)
        logger.info(f"Found {len(suspicious)} suspicious pairs")
        return suspicious
