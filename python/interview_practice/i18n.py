"""
User-facing strings for the practice client in English and Chinese.

The language is passed explicitly to every component that renders text;
nothing here reads global state.
"""

from __future__ import annotations

from enum import Enum


class Language(str, Enum):
    """Supported UI languages."""

    EN = "en"
    ZH = "zh"


MESSAGES: dict[str, dict[Language, str]] = {
    # Notifications
    "start_failed": {
        Language.EN: "Failed to start session",
        Language.ZH: "启动会话失败",
    },
    "end_failed": {
        Language.EN: "Failed to end session",
        Language.ZH: "结束会话失败",
    },
    "topic_refresh_failed": {
        Language.EN: "Failed to load the next topic",
        Language.ZH: "加载新话题失败",
    },
    "sign_in_required": {
        Language.EN: "Please sign in to start practicing",
        Language.ZH: "请先登录再开始练习",
    },
    "empty_target_position": {
        Language.EN: "Please enter a target position",
        Language.ZH: "请输入目标职位",
    },
    "empty_message": {
        Language.EN: "Please enter a message",
        Language.ZH: "请输入消息",
    },
    "session_not_started": {
        Language.EN: "Start a session first",
        Language.ZH: "请先开始会话",
    },
    "busy": {
        Language.EN: "Please wait for the current reply",
        Language.ZH: "请等待当前回复完成",
    },
    "session_ended": {
        Language.EN: "This session has ended. Start a new one to keep practicing.",
        Language.ZH: "本次会话已结束，请开始新的练习。",
    },
    # In-conversation fallbacks
    "send_failed": {
        Language.EN: "Sorry, something went wrong. Please try again.",
        Language.ZH: "抱歉，发生了一些错误。请重试。",
    },
    "ack_switch_topic": {
        Language.EN: "Sure, let's move on to a new topic.",
        Language.ZH: "好的，我们换一个话题。",
    },
    "ack_end_interview": {
        Language.EN: "Thanks for your time. Let's wrap up and review how it went.",
        Language.ZH: "感谢你的参与，我们来总结一下你的表现。",
    },
    "ack_need_hint": {
        Language.EN: "Here's a hint to help you get going.",
        Language.ZH: "给你一点提示。",
    },
    "ack_default": {
        Language.EN: "Got it. Let's keep going.",
        Language.ZH: "好的，我们继续。",
    },
    # Formatting
    "duration": {
        Language.EN: "{minutes}m {seconds}s",
        Language.ZH: "{minutes}分 {seconds}秒",
    },
}

DEPTH_LABELS: dict[Language, tuple[str, ...]] = {
    Language.EN: ("Starting", "Basic", "Good", "Complete"),
    Language.ZH: ("开始", "基础", "良好", "完整"),
}

DIFFICULTY_LABELS: dict[Language, dict[str, str]] = {
    Language.EN: {"Easy": "Easy", "Medium": "Medium", "Hard": "Hard"},
    Language.ZH: {"Easy": "简单", "Medium": "中等", "Hard": "困难"},
}

THINKING_STEP_LABELS: dict[str, dict[Language, str]] = {
    "analyze_position": {Language.EN: "Analyzing target position", Language.ZH: "分析目标职位"},
    "select_topic": {Language.EN: "Selecting interview topic", Language.ZH: "选择面试话题"},
    "generate_question": {Language.EN: "Generating opening question", Language.ZH: "生成开场问题"},
    "detect_intent": {Language.EN: "Understanding user intent", Language.ZH: "理解用户意图"},
    "evaluate_response": {Language.EN: "Evaluating response quality", Language.ZH: "评估回答质量"},
    "generate_followup": {Language.EN: "Generating follow-up", Language.ZH: "生成追问"},
    "collect_responses": {Language.EN: "Collecting conversation data", Language.ZH: "整理对话内容"},
    "analyze_performance": {Language.EN: "Analyzing overall performance", Language.ZH: "分析整体表现"},
    "evaluate_skills": {Language.EN: "Evaluating demonstrated skills", Language.ZH: "评估技能展示"},
    "generate_feedback": {Language.EN: "Generating detailed feedback", Language.ZH: "生成详细反馈"},
    "search_jobs": {Language.EN: "Searching matching positions", Language.ZH: "搜索匹配职位"},
    "match_companies": {Language.EN: "Matching recommended companies", Language.ZH: "匹配推荐公司"},
    "compile_report": {Language.EN: "Compiling final report", Language.ZH: "整合最终报告"},
}

PROGRESS_STEP_LABELS: dict[str, dict[Language, str]] = {
    "parsing": {Language.EN: "Parsing job description", Language.ZH: "解析职位描述"},
    "searching_glassdoor": {Language.EN: "Searching Glassdoor interviews", Language.ZH: "搜索 Glassdoor 面经"},
    "searching_leetcode": {Language.EN: "Searching LeetCode problems", Language.ZH: "搜索 LeetCode 题目"},
    "searching_tavily": {Language.EN: "Searching the web", Language.ZH: "搜索网络资料"},
    "extracting_knowledge": {Language.EN: "Extracting knowledge points", Language.ZH: "提取知识点"},
    "generating_plan": {Language.EN: "Generating practice plan", Language.ZH: "生成练习计划"},
    "complete": {Language.EN: "Preparation complete", Language.ZH: "准备完成"},
    "error": {Language.EN: "Preparation failed", Language.ZH: "准备失败"},
}


def translate(key: str, language: Language, **params: object) -> str:
    """
    Look up a message and fill in its parameters.

    Raises:
        KeyError: If ``key`` is not a known message.
    """
    template = MESSAGES[key][language]
    return template.format(**params) if params else template


def thinking_step_label(tool: str, language: Language) -> str:
    labels = THINKING_STEP_LABELS.get(tool)
    if labels is None:
        return tool
    return labels[language]


def progress_step_label(step: str, language: Language) -> str:
    labels = PROGRESS_STEP_LABELS.get(step)
    if labels is None:
        # Unknown searching_* sources fall back to a readable form of the key.
        return step.replace("_", " ").capitalize()
    return labels[language]
