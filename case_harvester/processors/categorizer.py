"""
Case Categorizer - keyword taxonomy for usage cases

Ordered rule table: the lower-cased title, description and prompts are
concatenated and the first category with any keyword present wins. Order
matters because keyword sets overlap ("3d product design" is a figurine case,
"background" is a scene case).
"""

from typing import Iterable, List, Tuple

from case_harvester.models import CaseRecord

DEFAULT_CATEGORY = "other"

CATEGORY_NAMES = {
    "figurine": "3D手办制作",
    "clothing": "服装替换",
    "scene": "场景合成",
    "style": "风格转换",
    "character": "角色编辑",
    "background": "背景替换",
    "composition": "图像合成",
    "enhancement": "图像增强",
    "design": "设计相关",
    "education": "教育相关",
    "business": "商业相关",
    "technical": "技术相关",
    "artistic": "艺术相关",
    "other": "其他",
}

CATEGORY_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("figurine", ("figurine", "手办", "3d")),
    ("clothing", ("clothing", "outfit", "衣服", "服装")),
    ("scene", ("scene", "场景", "background", "背景")),
    ("style", ("style", "风格", "artistic")),
    ("character", ("character", "角色", "person")),
    ("composition", ("composition", "合成", "combine")),
    ("enhancement", ("enhance", "增强")),
    # narrower topic rules after the broad image-editing ones
    ("design", ("design", "设计", "包装", "包装生成")),
    ("education", ("教育", "教学", "分析", "批注", "标注", "卡路里", "批改")),
    ("business", ("广告", "营销", "信息图", "商业", "商品", "business")),
    ("technical", ("技术", "参数", "设置", "拆解", "硬件", "相机", "technical", "iso")),
    ("artistic", ("艺术", "绘画", "插画", "漫画", "painting", "illustration", "drawing")),
)


def category_name(category: str) -> str:
    return CATEGORY_NAMES.get(category, CATEGORY_NAMES[DEFAULT_CATEGORY])


def categorize(title: str = "", description: str = "", prompts: Iterable[str] = ()) -> str:
    text = " ".join([title or "", description or "", " ".join(p for p in (prompts or []) if p)]).lower()
    for category, keywords in CATEGORY_RULES:
        if any(keyword in text for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def reclassify_other(cases: List[CaseRecord]) -> Tuple[List[CaseRecord], int]:
    """
    Re-run categorization for cases still labelled "other".

    Effects stand in for the description. Returns the new list (input order
    kept) and how many cases changed label; running it again changes nothing.
    """
    updated = []
    changed = 0
    for case in cases:
        if case.category != DEFAULT_CATEGORY:
            updated.append(case)
            continue
        category = categorize(case.title, " ".join(case.effects), case.prompts)
        if category != DEFAULT_CATEGORY:
            changed += 1
            case = case.with_category(category)
        updated.append(case)
    return updated, changed
