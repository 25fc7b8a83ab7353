import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from focusflow.services.behavior_engine.snapshot import BehavioralSnapshot


class TopicFamily(str, Enum):
    CODING = "coding"
    PHYSICS = "physics"
    CHEMISTRY = "chemistry"
    BIOLOGY = "biology"
    MATH = "math"
    HISTORY = "history"
    ECONOMICS = "economics"
    GENERAL = "general"

class ContextQuality(str, Enum):
    GOOD = "good"
    WEAK = "weak"
    NONE = "none"


@dataclass(frozen=True)
class TopicProfile:
    """
    How well the current page lines up with the declared study topic.
    Derived per request, never stored.
    """
    topic_family: TopicFamily
    topic_terms: List[str]
    matched_terms: List[str]
    relevance_score: float
    context_quality: ContextQuality


class TopicRelevanceProfiler:
    """
    Maps a free-text study topic onto a coarse topic family and scores the
    page content against the resulting term lexicon.
    """

    STOPWORDS = frozenset({
        "the", "and", "for", "with", "that", "this", "from", "into", "about", "your", "you",
        "are", "was", "were", "have", "has", "had", "will", "would", "could", "should", "can",
        # Site chrome that shows up on every education portal
        "academy", "welcome", "home", "login", "parent", "teacher", "learner",
    })

    # Enumeration order matters: ties go to the first family listed
    TOPIC_SYNONYMS: Dict[TopicFamily, List[str]] = {
        TopicFamily.CODING: [
            "program", "programming", "code", "coding", "algorithm", "function", "loop",
            "array", "linked", "tree", "stack", "queue", "complexity", "javascript",
            "react", "hooks", "state", "component", "useeffect", "usestate",
        ],
        TopicFamily.PHYSICS: [
            "force", "motion", "energy", "velocity", "acceleration", "torque", "momentum", "newton",
        ],
        TopicFamily.CHEMISTRY: [
            "atom", "molecule", "reaction", "oxidation", "reduction", "acid", "base", "bond",
        ],
        TopicFamily.BIOLOGY: ["cell", "gene", "enzyme", "organism", "dna", "protein", "evolution"],
        TopicFamily.MATH: [
            "algebra", "calculus", "equation", "derivative", "integral", "geometry", "probability",
        ],
        TopicFamily.HISTORY: ["empire", "war", "revolution", "timeline", "civilization", "treaty"],
        TopicFamily.ECONOMICS: ["demand", "supply", "inflation", "gdp", "market", "elasticity"],
    }

    MAX_TOPIC_TOKENS = 8
    MIN_TERM_DENOMINATOR = 4

    GOOD_CONTEXT_THRESHOLD = 0.35
    WEAK_CONTEXT_THRESHOLD = 0.15

    _SPLIT = re.compile(r"[^a-z0-9]+")

    @classmethod
    def tokenize(cls, text) -> List[str]:
        """Lowercase, split on non-alphanumerics, drop short tokens and stopwords"""
        lowered = str(text or "").lower()
        return [w for w in cls._SPLIT.split(lowered) if len(w) >= 3 and w not in cls.STOPWORDS]

    @classmethod
    def infer_topic_family(cls, study_topic: str) -> TopicFamily:
        tokens = cls.tokenize(study_topic)
        if not tokens:
            return TopicFamily.GENERAL

        best_family = TopicFamily.GENERAL
        best_score = 0
        for family, synonyms in cls.TOPIC_SYNONYMS.items():
            lexicon = {family.value, *synonyms}
            score = sum(1 for t in tokens if t in lexicon)
            if score > best_score:
                best_score = score
                best_family = family

        return best_family

    @classmethod
    def topic_terms(cls, study_topic: str, family: TopicFamily) -> List[str]:
        base = cls.tokenize(study_topic)[: cls.MAX_TOPIC_TOKENS]
        synonyms = cls.TOPIC_SYNONYMS.get(family, [])
        # dict.fromkeys keeps first-seen order while deduplicating
        return list(dict.fromkeys([*base, *synonyms]))

    @classmethod
    def context_quality_for(cls, score: float) -> ContextQuality:
        if score >= cls.GOOD_CONTEXT_THRESHOLD:
            return ContextQuality.GOOD
        if score >= cls.WEAK_CONTEXT_THRESHOLD:
            return ContextQuality.WEAK
        return ContextQuality.NONE

    def profile(self, snapshot: BehavioralSnapshot) -> TopicProfile:
        """
        Score how well the page (title + headings + summary) matches the topic.

        relevance = min(1, |matched| / max(4, |terms|)), rounded to 2 decimals.
        """
        family = self.infer_topic_family(snapshot.study_topic)
        terms = self.topic_terms(snapshot.study_topic, family)

        source_text = " ".join(
            [snapshot.page_title or "", *snapshot.content.headings, snapshot.content.summary or ""]
        )
        source_tokens = set(self.tokenize(source_text))
        matched = [t for t in terms if t in source_tokens]

        if terms:
            score = min(1.0, len(matched) / max(self.MIN_TERM_DENOMINATOR, len(terms)))
        else:
            score = 0.0
        score = round(score, 2)

        return TopicProfile(
            topic_family=family,
            topic_terms=terms,
            matched_terms=matched,
            relevance_score=score,
            context_quality=self.context_quality_for(score),
        )


def tokenize(text) -> List[str]:
    return TopicRelevanceProfiler.tokenize(text)


def topic_terms(study_topic: str, family: TopicFamily) -> List[str]:
    return TopicRelevanceProfiler.topic_terms(study_topic, family)


def compute_topic_relevance(snapshot: BehavioralSnapshot) -> TopicProfile:
    return TopicRelevanceProfiler().profile(snapshot)
