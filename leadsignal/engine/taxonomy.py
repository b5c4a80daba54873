"""
Issue taxonomy + detector — lexical scan of customer comments.

Four fixed categories (leakage, temperature, weak packaging, presentation),
each with a keyword list. A comment counts once toward every category it
mentions, no matter how many keywords of that category it contains.
"""
import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import yaml

logger = logging.getLogger('engine.taxonomy')


LEAKAGE = 'vazamento'
TEMPERATURE = 'temperatura'
WEAK_PACKAGING = 'embalagem_fraca'
PRESENTATION = 'apresentacao'

CATEGORIES = (LEAKAGE, TEMPERATURE, WEAK_PACKAGING, PRESENTATION)


# ── Taxonomy config (YAML with hardcoded fallback) ───────────────────────────

_taxonomy = None


def _default_taxonomy() -> Dict[str, List[str]]:
    """Hardcoded fallback if YAML is missing."""
    return {
        LEAKAGE: ['vazou', 'vazando', 'derramou', 'molhou', 'aberta', 'aberto', 'virada', 'entornou'],
        TEMPERATURE: ['fria', 'frio', 'gelada', 'gelado', 'morna', 'morno', 'chegou fria', 'chegou frio'],
        WEAK_PACKAGING: [
            'amassada', 'amassado', 'rasgada', 'rasgado', 'solta', 'mole', 'quebrada', 'frágil',
            'embalagem ruim', 'pessima embalagem',
        ],
        PRESENTATION: ['bagunçada', 'bagunçado', 'revirada', 'misturada', 'feia', 'jogada'],
    }


def load_taxonomy() -> Dict[str, List[str]]:
    """Load keyword lists from YAML, with in-memory cache and hardcoded fallback.

    Categories missing from the file keep their default keywords; unknown
    categories in the file are ignored.
    """
    global _taxonomy
    if _taxonomy is not None:
        return _taxonomy

    taxonomy = _default_taxonomy()
    config_path = os.path.join(os.path.dirname(__file__), 'taxonomy.yaml')
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        for category, words in (data.get('categories') or {}).items():
            if category not in taxonomy:
                logger.warning("Ignoring unknown taxonomy category '%s'", category)
                continue
            if words:
                taxonomy[category] = [str(w).lower() for w in words]
        logger.info("Taxonomy loaded from YAML (version=%s)", data.get('version', '?'))
    except Exception as e:
        logger.warning("Taxonomy YAML not loaded (%s), using defaults", e)

    _taxonomy = taxonomy
    return _taxonomy


# ── Detection ────────────────────────────────────────────────────────────────

@dataclass
class IssueCounts:
    """Per-category comment counts plus the aggregate category-hit count."""
    counts: Dict[str, int] = field(default_factory=lambda: {c: 0 for c in CATEGORIES})
    total: int = 0

    def __getitem__(self, category: str) -> int:
        return self.counts.get(category, 0)

    @property
    def leakage(self) -> int:
        return self[LEAKAGE]

    @property
    def temperature(self) -> int:
        return self[TEMPERATURE]

    @property
    def weak_packaging(self) -> int:
        return self[WEAK_PACKAGING]

    @property
    def presentation(self) -> int:
        return self[PRESENTATION]

    def to_dict(self) -> Dict[str, int]:
        return dict(self.counts)


def detect_issues(comments: Iterable[Optional[str]], taxonomy: Dict[str, List[str]] = None) -> IssueCounts:
    """Count packaging issue categories across a sequence of comment texts.

    Empty or None comments are skipped.
    """
    taxonomy = taxonomy or load_taxonomy()
    result = IssueCounts()

    for comment in comments or []:
        if not comment:
            continue
        text = str(comment).lower()
        for category in CATEGORIES:
            if any(word in text for word in taxonomy.get(category, [])):
                result.counts[category] += 1
                result.total += 1

    return result
