"""
Lemmatization of Russian text.

Words are reduced to their dictionary form through a morphology capability;
function words and words unknown to the dictionary are dropped.
"""

import re
from typing import Dict, List, Optional, Protocol

import pymorphy3


WORD_PATTERN = re.compile(r'[а-яё]+')

# Prepositions, conjunctions, particles, interjections, pronouns and pronoun-adjectives
FUNCTION_WORD_GRAMMEMES = frozenset({'PREP', 'CONJ', 'PRCL', 'INTJ', 'NPRO', 'Apro'})


class Morphology(Protocol):
    """The part of a morphological dictionary the lemmatizer needs."""

    def morph_info(self, word: str) -> List[str]:
        """Grammatical tags of every analysis of ``word``; empty if unknown."""
        ...

    def normal_forms(self, word: str) -> List[str]:
        """Dictionary forms of ``word``, most probable first."""
        ...


class PymorphyMorphology:
    """Morphology backed by pymorphy3's Russian dictionary."""

    def __init__(self, analyzer: Optional[pymorphy3.MorphAnalyzer] = None):
        self.analyzer = analyzer or pymorphy3.MorphAnalyzer(lang='ru')

    def morph_info(self, word: str) -> List[str]:
        if not self.analyzer.word_is_known(word):
            return []
        return [str(parse.tag) for parse in self.analyzer.parse(word)]

    def normal_forms(self, word: str) -> List[str]:
        forms = []
        for parse in self.analyzer.parse(word):
            if parse.normal_form not in forms:
                forms.append(parse.normal_form)
        return forms


class Lemmatizer:
    """Turns text into lemma counts."""

    def __init__(self, morphology: Optional[Morphology] = None):
        self.morphology = morphology or PymorphyMorphology()

    def extract_lemmas(self, text: str) -> Dict[str, int]:
        """Occurrence count of every lemma in ``text``."""
        lemmas: Dict[str, int] = {}

        for word in (text or '').lower().split():
            if not WORD_PATTERN.fullmatch(word):
                continue

            info = self.morphology.morph_info(word)
            if not info or self._is_function_word(info[0]):
                continue

            forms = self.morphology.normal_forms(word)
            if forms:
                lemma = forms[0]
                lemmas[lemma] = lemmas.get(lemma, 0) + 1

        return lemmas

    def extract_query_lemmas(self, query: str) -> List[str]:
        """Distinct lemmas of a query in order of first appearance."""
        return list(self.extract_lemmas(query))

    @staticmethod
    def _is_function_word(info: str) -> bool:
        grammemes = set(re.split(r'[\s,]+', info))
        return not grammemes.isdisjoint(FUNCTION_WORD_GRAMMEMES)
