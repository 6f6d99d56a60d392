"""
Scripted content for the practice sandbox backend.

Topics, follow-up questions, intent keywords and preparation phases used by
practice_sandbox.py in place of model-generated text.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ScriptedTopic:
    """One practice topic with its canned questions."""

    topic_id: str
    name: str
    difficulty: str
    opening: str
    follow_ups: tuple[str, ...]
    easier: str
    harder: str
    specific: str
    primary_ability: str
    secondary_abilities: tuple[str, ...]
    source: str


SANDBOX_TOPICS: tuple[ScriptedTopic, ...] = (
    ScriptedTopic(
        topic_id="system_design",
        name="System Design",
        difficulty="medium",
        opening=(
            "Tell me about a time you designed a system that had to scale. "
            "What were the main constraints?"
        ),
        follow_ups=(
            "How did you decide where to draw the service boundaries?",
            "What happened when one of the downstream dependencies slowed down?",
            "How did you measure whether the design was actually working?",
            "If you rebuilt it today, what would you change first?",
        ),
        easier="Can you describe the main components of a web application you worked on?",
        harder=(
            "How would you keep a multi-region write path consistent while "
            "staying available during a regional outage?"
        ),
        specific="Design a URL shortener that handles 10,000 writes per second.",
        primary_ability="Architecture trade-offs",
        secondary_abilities=("Scalability", "Reliability"),
        source="Common onsite system design round",
    ),
    ScriptedTopic(
        topic_id="debugging",
        name="Production Debugging",
        difficulty="easy",
        opening="Walk me through the hardest production incident you helped resolve.",
        follow_ups=(
            "What was the first signal that something was wrong?",
            "How did you narrow the problem down to its root cause?",
            "What did the team change afterwards so it would not happen again?",
        ),
        easier="What tools do you usually reach for when a service starts returning errors?",
        harder=(
            "How would you debug a latency spike that only affects 1% of "
            "requests and never reproduces locally?"
        ),
        specific="An API's p99 latency doubled after a deploy with no code changes to it. What do you check?",
        primary_ability="Structured problem solving",
        secondary_abilities=("Observability", "Communication under pressure"),
        source="Behavioral + technical screen",
    ),
    ScriptedTopic(
        topic_id="collaboration",
        name="Team Collaboration",
        difficulty="hard",
        opening="Tell me about a technical disagreement with a colleague. How was it resolved?",
        follow_ups=(
            "What did you do to understand their point of view?",
            "How was the final decision made and communicated?",
            "Looking back, would you handle it differently?",
        ),
        easier="How do you usually give feedback in code reviews?",
        harder=(
            "Describe a time you had to push back on a senior stakeholder's "
            "technical direction. What was at stake?"
        ),
        specific="Your tech lead wants to rewrite a stable service you own. How do you respond?",
        primary_ability="Influence without authority",
        secondary_abilities=("Conflict resolution", "Written communication"),
        source="Hiring manager round",
    ),
)


# Checked in order: the first list with a keyword in the message wins.
INTENT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "end_interview",
        (
            "结束", "不想继续", "停止", "就这样吧",
            "end the interview", "stop", "quit", "finish", "that's enough", "i'm done",
        ),
    ),
    (
        "switch_topic",
        (
            "换个话题", "换一个话题", "下一个问题", "其他问题", "不想回答这个",
            "switch", "next topic", "different question", "skip this", "move on",
        ),
    ),
    (
        "need_hint",
        (
            "不太会", "不知道怎么回答", "能给个提示", "帮帮我", "给我提示",
            "don't know", "hint", "not sure", "stuck",
        ),
    ),
    ("want_easier", ("简单一点", "太难了", "easier", "too hard", "simpler")),
    ("want_harder", ("难一点", "太简单", "harder", "too easy", "more challenging")),
    ("want_specific", ("具体的题", "具体题目", "specific question", "concrete question")),
)

TRANSITIONS: dict[str, dict[str, str]] = {
    "want_easier": {
        "en": "Sure, let me ask something more basic: ",
        "zh": "好的，我们换一个更基础的问题：",
    },
    "want_harder": {
        "en": "Alright, here's a more challenging one: ",
        "zh": "好的，来一个更有挑战性的问题：",
    },
    "want_specific": {
        "en": "Sure, here's a specific interview question: ",
        "zh": "好的，给你一道具体的面试题：",
    },
    "switch_topic": {
        "en": "No problem, let's move on. I'll prepare feedback on this topic.",
        "zh": "没问题，我们换个话题。我会整理这个话题的反馈。",
    },
    "end_interview": {
        "en": "Thanks, let's wrap up.",
        "zh": "好的，我们结束这次练习。",
    },
    "need_hint": {
        "en": "Here's a hint: think about a concrete project, your role in it, and one number that shows the result.",
        "zh": "提示：想一个具体的项目、你在其中的角色，以及一个能说明结果的数字。",
    },
}

# Words that suggest an answer carries substance worth recording.
INFO_SIGNALS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("metric", ("%", "ms", "seconds", "users", "requests", "million", "thousand")),
    ("ownership", ("i led", "i designed", "i built", "i owned", "我负责", "我设计")),
    ("technology", ("kafka", "postgres", "redis", "kubernetes", "python", "aws")),
    ("outcome", ("reduced", "improved", "increased", "cut", "降低", "提升")),
)

MIN_SUBSTANTIVE_WORDS = 12

PREPARATION_PHASES: tuple[tuple[str, str, int], ...] = (
    ("parsing", "Parsing the job description", 10),
    ("searching_glassdoor", "Searching Glassdoor interview reports", 25),
    ("searching_leetcode", "Searching LeetCode problems", 40),
    ("searching_tavily", "Searching the web for recent interview experiences", 55),
    ("extracting_knowledge", "Extracting key knowledge points", 75),
    ("generating_plan", "Generating your practice plan", 90),
)

SANDBOX_COMPANIES: tuple[dict[str, object], ...] = (
    {
        "company": "Northwind Logistics",
        "jobTitle": "Backend Engineer",
        "matchScore": 86,
        "reasons": ["Event-driven architecture", "High-throughput APIs"],
        "keySkills": ["Python", "Kafka", "PostgreSQL"],
        "preparationTips": ["Review idempotent consumers", "Prepare a capacity-planning story"],
    },
    {
        "company": "Contoso Health",
        "jobTitle": "Platform Engineer",
        "matchScore": 78,
        "reasons": ["Reliability focus", "On-call ownership"],
        "keySkills": ["Kubernetes", "Observability", "Incident response"],
        "preparationTips": ["Practice an incident post-mortem walkthrough"],
    },
)
