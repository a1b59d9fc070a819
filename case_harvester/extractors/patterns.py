"""
Pattern Rule Tables

All regex heuristics used by the extractors live here as ordered tables of
named rules. Order is priority: format detection stops at the first format
whose marker is present; the generic extractor runs every prompt rule in order
and keeps first occurrences.

Prompt acceptance is a two-sided check: a candidate must contain an action
term (what to do) and a target term (what to do it to). Confidence is an
additive score over the checks a candidate passes, so passing more checks can
never lower it.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

MIN_PROMPT_LENGTH = 20
MAX_PROMPT_LENGTH = 2000
DESCRIPTIVE_LENGTH = 30
DETAILED_LENGTH = 100

MIN_EFFECT_LENGTH = 5
MAX_EFFECT_LENGTH = 200


@dataclass(frozen=True)
class PromptRule:
    name: str
    pattern: re.Pattern
    group: int = 1
    fenced: bool = False


@dataclass(frozen=True)
class FormatRule:
    name: str
    markers: Tuple[str, ...]


# =============================================================================
# VOCABULARIES
# =============================================================================

ACTION_TERMS = (
    "create", "make", "turn", "transform", "generate", "edit", "change",
    "convert", "craft", "design", "replace", "render", "draw", "restyle",
    "place", "put", "add", "remove", "swap", "recreate", "redraw", "colorize",
    "生成", "制作", "创建", "创作", "转换", "变成", "绘制", "设计", "替换", "添加", "将", "把",
)

TARGET_TERMS = (
    "figurine", "character", "scene", "style", "clothing", "outfit", "person",
    "image", "photo", "picture", "3d", "model", "portrait", "background",
    "poster", "illustration", "product", "face", "selfie", "subject", "packaging",
    "照片", "图片", "图像", "人物", "手办", "场景", "背景", "角色", "风格", "海报", "服装", "模型", "插画",
)

# Latin terms need word boundaries ("make" must not match "maker", "3d" must not match "3ds");
# CJK terms are matched as substrings.
_ACTION_RE = re.compile(
    r"(?<![a-z])(?:" + "|".join(re.escape(t) for t in ACTION_TERMS if t.isascii()) + r")(?:s|d|ed|ing)?(?![a-z])"
    + "|" + "|".join(re.escape(t) for t in ACTION_TERMS if not t.isascii()),
    re.IGNORECASE,
)
_TARGET_RE = re.compile(
    r"(?<![a-z])(?:" + "|".join(re.escape(t) for t in TARGET_TERMS if t.isascii()) + r")(?:s|es)?(?![a-z])"
    + "|" + "|".join(re.escape(t) for t in TARGET_TERMS if not t.isascii()),
    re.IGNORECASE,
)


# =============================================================================
# BLOCKLIST - known false-positive forms
# =============================================================================

BLOCKLIST_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("bare_identifier", re.compile(r"^[A-Za-z_][\w.\-]*$")),
    ("function_call", re.compile(r"^[A-Za-z_][\w.]*\(")),
    ("camel_case", re.compile(r"^[a-z]+[A-Z]\w*$|^[A-Z][a-z]+[A-Z]\w*$")),
    ("bare_url", re.compile(r"^(?:https?://|www\.)\S+$", re.IGNORECASE)),
    ("navigation", re.compile(r"^(?:(?:click|view|more|read more)\b|点击|查看|更多)", re.IGNORECASE)),
    ("code_marker", re.compile(r"^(?:import |from \S+ import|const |let |var |def |function\b|\$ |npm |pip )")),
)


# =============================================================================
# FORMAT DETECTION - literal section-header markers, checked in order
# =============================================================================

FORMAT_RULES: Tuple[FormatRule, ...] = (
    FormatRule("numbered_example", ("### 例 1:", "### 例 2:")),
    FormatRule("case_heading", ("Case 1:", "Case 2:")),
    FormatRule("keycap_emoji", ("1️⃣", "2️⃣")),
)

SECTION_SPLITTERS = {
    "numbered_example": re.compile(r"(?=### 例 \d+:)"),
    "case_heading": re.compile(r"(?=Case \d+:)"),
    "keycap_emoji": re.compile(r"(?<!\d)(?=\d+\ufe0f?\u20e3)"),
}

SECTION_TITLES = {
    # ### 例 3: [title](link)（by author）rest
    "numbered_example": re.compile(r"^### (例 \d+:[^（\n]*)(?:（by[^）]*）)?(.*)", re.DOTALL),
    # Case 3: title (by author) rest
    "case_heading": re.compile(r"^(Case \d+:[^(\n]*)(?:\(by[^)]*\))?(.*)", re.DOTALL),
    # 3️⃣ title： rest
    "keycap_emoji": re.compile(r"^(\d+\ufe0f?\u20e3[^：:\n]+)[：:]?(.*)", re.DOTALL),
}

SECTION_PROMPTS = {
    "numbered_example": PromptRule("fenced_block", re.compile(r"```[\w-]*\s*(.+?)\s*```", re.DOTALL), fenced=True),
    "case_heading": PromptRule("fenced_block", re.compile(r"```[\w-]*\s*(.+?)\s*```", re.DOTALL), fenced=True),
    "keycap_emoji": PromptRule(
        "labelled_fenced", re.compile(r"prompt\s*[：:]\s*```[\w-]*\s*(.+?)\s*```", re.DOTALL | re.IGNORECASE), fenced=True
    ),
}

# fenced blocks that show input/output samples rather than a prompt
SAMPLE_BLOCK_MARKERS = ("输入:", "输出:", "输入：", "输出：")


# =============================================================================
# GENERIC PROMPT RULES - highest precision first
# =============================================================================

# a line opening with an effect/prompt label or an image ends a multi-line prompt
_CONTINUATION_STOP = (
    r"[ >*-]*\**(?:effect|result|output|outcome|description|prompt|提示词|效果|结果|输出|说明|描述|用途)\**\s*[：:]"
    r"|[ >*-]*(?:!\[|<img\b)"
)

PROMPT_RULES: Tuple[PromptRule, ...] = (
    PromptRule(
        "labelled_fenced",
        re.compile(r"(?:prompt|提示词)\s*[：:]\s*```[\w-]*\s*(.+?)\s*```", re.DOTALL | re.IGNORECASE),
        fenced=True,
    ),
    PromptRule(
        "bold_labelled",
        re.compile(
            r"\*\*(?:prompt|提示词)\s*[：:]?\s*\*\*\s*[：:]?\s*(.+?)(?=\n\s*\n|\n(?:" + _CONTINUATION_STOP + r")|\*\*[A-Z0-9]|$)",
            re.DOTALL | re.IGNORECASE,
        ),
    ),
    PromptRule(
        "labelled_quoted",
        re.compile(r"(?:prompt|提示词|输入)\s*[：:]\s*[\"“']([^\"”'\n]{20,})[\"”']", re.IGNORECASE),
    ),
    PromptRule(
        "labelled_paragraph",
        re.compile(
            r"(?:^|\n)[ >*-]*(?:prompt|提示词)\s*[：:][ \t]*([^\s`*][^\n]*(?:\n(?!\n|" + _CONTINUATION_STOP + r")[^\n]+)*)",
            re.IGNORECASE,
        ),
    ),
    PromptRule("fenced_block", re.compile(r"```(?:yaml|json|text|prompt|txt)?[ \t]*\n?(.+?)\s*```", re.DOTALL), fenced=True),
    PromptRule("block_quote", re.compile(r"^>\s*([^\n]+(?:\n(?!\n)[^\n>][^\n]*)*)", re.MULTILINE)),
    PromptRule("quoted_instruction", re.compile(r"[\"“]([^\"”\n]{30,500})[\"”]")),
    PromptRule(
        "action_sentence",
        re.compile(
            r"((?<![A-Za-z])(?:create|make|turn|transform|generate|craft|convert|restyle)\b[^.!?\n]{0,200}?"
            r"\b(?:photo|image|picture|portrait|figurine|person|character|scene|selfie)s?\b[^.!?\n]*[.!?]?)",
            re.IGNORECASE,
        ),
    ),
)


# =============================================================================
# EFFECTS AND IMAGES
# =============================================================================

EFFECT_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"(?:^|\n)[ >*-]*\**(?:effect|result|output|outcome|description)\**\s*[：:]\**\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"(?:^|\n)[ >*-]*\**(?:效果|结果|输出|说明|描述|用途)\**\s*[：:]\**\s*([^\n]+)"),
)

IMAGE_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"!\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+\"[^\"]*\")?\s*\)"),
    re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(r"(?<![(\"'=])(https?://[^\s)\"'<>]+?\.(?:jpg|jpeg|png|gif|webp))(?![\w/])", re.IGNORECASE),
)

# relative paths under this prefix are rewritten against the configured image base URL
RELATIVE_IMAGE_PREFIXES = ("images/", "./images/")


# =============================================================================
# VALIDATION AND SCORING
# =============================================================================

def has_action_term(text: str) -> bool:
    return bool(_ACTION_RE.search(text))


def has_target_term(text: str) -> bool:
    return bool(_TARGET_RE.search(text))


def blocklist_match(text: str) -> Optional[str]:
    stripped = text.strip()
    for name, pattern in BLOCKLIST_PATTERNS:
        if pattern.search(stripped):
            return name
    return None


def prompt_checks(text: str) -> List[str]:
    """Names of the quality checks a prompt passes (order-independent)."""
    checks = []
    if has_action_term(text):
        checks.append("action")
    if has_target_term(text):
        checks.append("target")
    length = len(text.strip())
    if length >= DESCRIPTIVE_LENGTH:
        checks.append("descriptive")
    if length >= DETAILED_LENGTH:
        checks.append("detailed")
    return checks


def validate_prompt(text: str, relaxed: bool = False) -> bool:
    """
    Accept a prompt string.

    Length in [MIN_PROMPT_LENGTH, MAX_PROMPT_LENGTH], not on the blocklist and,
    unless relaxed, carrying both an action term and a target term.
    """
    if not text or not isinstance(text, str):
        return False
    stripped = text.strip()
    if not (MIN_PROMPT_LENGTH <= len(stripped) <= MAX_PROMPT_LENGTH):
        return False
    if blocklist_match(stripped):
        return False
    if relaxed:
        return True
    return has_action_term(stripped) and has_target_term(stripped)


CHECK_WEIGHTS = {
    "action": 0.2,
    "target": 0.2,
    "descriptive": 0.1,
    "detailed": 0.05,
    "effects": 0.1,
    "images": 0.1,
    "structural": 0.05,
}
BASE_CONFIDENCE = 0.3


def score_checks(checks) -> float:
    total = BASE_CONFIDENCE + sum(CHECK_WEIGHTS.get(c, 0.0) for c in set(checks))
    return round(min(total, 1.0), 4)


def score_candidate(prompt: str, effects=None, images=None, structural: bool = False) -> Tuple[float, List[str]]:
    checks = prompt_checks(prompt)
    if effects:
        checks.append("effects")
    if images:
        checks.append("images")
    if structural:
        checks.append("structural")
    return score_checks(checks), checks


def score_prompts(prompts, effects=None, images=None, structural: bool = False) -> Tuple[float, List[str]]:
    """Best (confidence, checks) over a group of prompts sharing effects and images."""
    best = (0.0, [])
    for prompt in prompts:
        scored = score_candidate(prompt, effects, images, structural)
        if scored[0] > best[0]:
            best = scored
    return best
