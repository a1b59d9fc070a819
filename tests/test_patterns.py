"""
Tests for prompt validation and confidence scoring rules.
"""

from itertools import combinations

from case_harvester.extractors.patterns import (
    CHECK_WEIGHTS,
    PROMPT_RULES,
    blocklist_match,
    has_action_term,
    has_target_term,
    score_candidate,
    score_checks,
    validate_prompt,
)

FIGURINE_PROMPT = "Create a 3D figurine of the uploaded photo"


class TestValidatePrompt:
    """Test candidate prompt acceptance."""

    def test_accepts_action_and_target(self):
        assert validate_prompt(FIGURINE_PROMPT)

    def test_rejects_short(self):
        assert not validate_prompt("Make a photo")

    def test_rejects_too_long(self):
        assert not validate_prompt("Create a photo " + "x" * 2000)

    def test_rejects_identifier(self):
        assert not validate_prompt("processImageFromUploadedPhoto")

    def test_rejects_bare_url(self):
        assert not validate_prompt("https://example.com/create-a-photo-figurine")

    def test_requires_vocabulary_unless_relaxed(self):
        text = "This sentence is long enough but says nothing"
        assert not validate_prompt(text)
        assert validate_prompt(text, relaxed=True)

    def test_chinese_prompt(self):
        assert validate_prompt("将这张照片里的人物制作成一个精致的手办模型")

    def test_non_string(self):
        assert not validate_prompt(None)
        assert not validate_prompt(123)


class TestVocabulary:
    def test_action_word_boundaries(self):
        assert has_action_term("Turn the cat into a knight")
        assert has_action_term("transforming portraits")
        assert not has_action_term("a maker space")

    def test_target_terms(self):
        assert has_target_term("the uploaded photo")
        assert has_target_term("把人物放到海边")
        assert not has_target_term("the weather today")

    def test_blocklist(self):
        assert blocklist_match("import os, then make a photo") == "code_marker"
        assert blocklist_match("render_image(photo, style)") == "function_call"
        assert blocklist_match("Click here to see the photo") == "navigation"
        assert blocklist_match(FIGURINE_PROMPT) is None


class TestConfidence:
    """Test additive confidence scoring."""

    def test_figurine_prompt_score(self):
        confidence, checks = score_candidate(FIGURINE_PROMPT)
        assert confidence == 0.8
        assert set(checks) == {"action", "target", "descriptive"}

    def test_context_raises_score(self):
        base, _ = score_candidate(FIGURINE_PROMPT)
        with_effects, _ = score_candidate(FIGURINE_PROMPT, effects=["A desk toy"])
        with_all, _ = score_candidate(FIGURINE_PROMPT, effects=["A desk toy"], images=["https://x/y.png"], structural=True)
        assert base < with_effects < with_all
        assert with_all == 1.0

    def test_monotonic_over_all_check_sets(self):
        """Adding any check to any set of checks never lowers confidence."""
        names = list(CHECK_WEIGHTS)
        for size in range(len(names) + 1):
            for subset in combinations(names, size):
                for extra in names:
                    assert score_checks(list(subset) + [extra]) >= score_checks(list(subset))

    def test_capped(self):
        assert score_checks(list(CHECK_WEIGHTS)) == 1.0


class TestRuleTable:
    def test_rule_order(self):
        names = [rule.name for rule in PROMPT_RULES]
        assert names[0] == "labelled_fenced"
        assert names[-1] == "action_sentence"
        assert names.index("fenced_block") > names.index("labelled_paragraph")

    def test_labelled_fenced(self):
        rule = PROMPT_RULES[0]
        match = rule.pattern.search("Prompt: ```\nCreate a 3D figurine of the uploaded photo\n```")
        assert match.group(1) == FIGURINE_PROMPT
