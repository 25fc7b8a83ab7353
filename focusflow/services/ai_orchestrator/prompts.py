"""
Prompt templates for focus classification and intervention content.
Plain string formatting; literal JSON braces are doubled for str.format.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List

from focusflow.services.behavior_engine.snapshot import BehavioralSnapshot
from focusflow.services.behavior_engine.topic_relevance import TopicProfile


@dataclass
class PromptTemplate:
    """Simple template with variable injection"""
    text: str

    def format(self, **kwargs) -> str:
        try:
            return self.text.format(**kwargs)
        except KeyError as e:
            raise ValueError(f"Missing required template variable: {e}")


def _pretty(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


FLASHCARD_SCHEMA = """{{
  "question":"...",
  "options":["...","...","...","..."],
  "answer":"...",
  "hint":"...",
  "explanation":"..."
}}"""

MASCOT_SCHEMA = """{{
  "mascot_script": [
    {{"speaker":"devil","text":"..."}},
    {{"speaker":"angel","text":"..."}},
    {{"speaker":"devil","text":"..."}},
    {{"speaker":"angel","text":"..."}}
  ]
}}"""


# --- FOCUS CLASSIFICATION ---

FOCUS_CLASSIFIER = PromptTemplate(
    text="""You are a focus coach AI for a browser extension.
Assess if user is distracted from study topic and return strict JSON only.

Rules:
- Balanced intervention policy.
- Honor requested_intervention when sensible.
- If trigger_type is idle_allowed_site, prefer flashcard intervention.
- If trigger_type is offtopic_site, prefer mascot_chat intervention.
- If mild uncertainty, avoid intervention.
- If clearly distracted: prefer flashcard.
- If severe distraction pattern (repeated off-topic, low relevance, high tab switching): mascot_chat.
- flashcard must be beginner-level and topic-specific. Avoid platform/homepage text.
- mascot_script should be 4 short turns, alternating devil/angel starting with devil, with topic/context references.

Output JSON schema:
{{
  "status": "focused|mild_distraction|distracted|severe_distraction",
  "confidence": 0.0,
  "intervention": "none|flashcard|mascot_chat",
  "cooldown_seconds": 90,
  "reason_codes": ["..."],
  "flashcard": {{
    "question": "...",
    "options": ["..."],
    "answer": "...",
    "hint": "..."
  }},
  "mascot_script": [
    {{"speaker":"devil","text":"..."}},
    {{"speaker":"angel","text":"..."}}
  ]
}}

Current event summary:
{current}

Recent context window:
{recent}
"""
)


# --- FLASHCARDS ---

FLASHCARD_GENERATOR = PromptTemplate(
    text="""Generate one beginner-level MCQ flashcard as strict JSON:
""" + FLASHCARD_SCHEMA + """

Rules:
- The question must be subject-specific to study_topic.
- If mode=context_aligned, use headings/summary concepts when relevant.
- If mode=topic_only, ignore generic page text and ask a valid topic question.
- Never mention platform/homepage text (e.g., welcome pages).
- Options must be plausible and only one correct.
- Explanation should be 2 concise beginner-friendly sentences.
- Do NOT use generic template phrasing like "Which option best explains a beginner concept in ...".
- Ask one concrete concept check from the topic (definition, mechanism, comparison, formula use, or interpretation).

Context:
{context}
"""
)

FLASHCARD_RESCUE = PromptTemplate(
    text="""Return strict JSON only for one beginner MCQ on this study topic.
""" + FLASHCARD_SCHEMA + """

Topic: {topic}
Domain context: {domain}

Rules:
- Exactly 4 options.
- Exactly one correct option.
- Keep it specific to the study topic, not platform text.
- Beginner-friendly and concise.
"""
)


# --- MASCOT DIALOGUE ---

MASCOT_GENERATOR = PromptTemplate(
    text="""Write a 4-turn angel/devil script for a distraction intervention.
Return strict JSON only:
""" + MASCOT_SCHEMA + """

Rules:
- Turn order must be devil, angel, devil, angel.
- Every line must explicitly mention the study topic (or a direct topic term), and may also reference domain/page context.
- Avoid generic motivational lines. Make the lines specific.
- Devil lines must tempt distraction, justify procrastination, or induce short-term guilt/avoidance.
- Devil must NOT praise studying or suggest productive actions.
- Angel should suggest a concrete action tied to the topic (not generic "go study").
- Use beginner-friendly tone and mention topic terms when possible.
- Keep each line 1-2 sentences, concrete and pointed.
- Devil should tempt using current distracting context; angel should counter with a concrete topic action.
- Keep each line unique. Do not repeat phrases.

Context:
{context}

{topic_hint}
"""
)

MASCOT_RESCUE = PromptTemplate(
    text="""Return strict JSON only.
""" + MASCOT_SCHEMA + """

Topic: {topic}
Current domain: {domain}
Page title: {page_title}

Rules:
- 4 lines exactly.
- speaker order: devil, angel, devil, angel.
- Mention topic or domain context in every line.
- Be specific and concrete.
"""
)


def build_focus_prompt(snapshot: BehavioralSnapshot, recent_context: List[Dict[str, Any]]) -> str:
    return FOCUS_CLASSIFIER.format(
        current=_pretty(snapshot.to_model_dict()),
        recent=_pretty(recent_context),
    )


def build_flashcard_prompt(snapshot: BehavioralSnapshot, profile: TopicProfile, mode: str) -> str:
    """Flashcard prompt; mode is context_aligned or topic_only"""
    context = {
        "study_topic": snapshot.study_topic,
        "difficulty": "beginner",
        "topic_family": profile.topic_family.value,
        "matched_terms": profile.matched_terms,
        "page_title": snapshot.page_title,
        "headings": snapshot.content.headings[:5],
        "summary": snapshot.content.summary[:1200],
        "domain": snapshot.domain,
        "mode": mode,
    }
    return FLASHCARD_GENERATOR.format(context=_pretty(context))


def build_flashcard_rescue_prompt(snapshot: BehavioralSnapshot) -> str:
    return FLASHCARD_RESCUE.format(
        topic=snapshot.study_topic or "general studies",
        domain=snapshot.domain or "unknown",
    )


def build_mascot_prompt(snapshot: BehavioralSnapshot, profile: TopicProfile) -> str:
    if profile.matched_terms:
        topic_hint = f"Focus on these matched terms: {', '.join(profile.matched_terms)}."
    else:
        topic_hint = (
            "No strong page-topic match found. Keep advice topic-specific and "
            "redirect to a relevant learning action."
        )

    context = {
        "study_topic": snapshot.study_topic,
        "topic_family": profile.topic_family.value,
        "matched_terms": profile.matched_terms,
        "domain": snapshot.domain,
        "page_title": snapshot.page_title,
        "headings": snapshot.content.headings[:3],
        "summary": snapshot.content.summary[:700],
    }
    return MASCOT_GENERATOR.format(context=_pretty(context), topic_hint=topic_hint)


def build_mascot_rescue_prompt(snapshot: BehavioralSnapshot) -> str:
    return MASCOT_RESCUE.format(
        topic=snapshot.study_topic or "current study topic",
        domain=snapshot.domain or "current site",
        page_title=snapshot.page_title or "",
    )
