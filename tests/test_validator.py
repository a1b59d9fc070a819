"""
Tests for the semantic validator adapters.
"""

import pytest
import requests

from case_harvester.processors.validator import (
    FuzzySimilarity,
    LLMValidator,
    SemanticValidator,
    ValidatorUnavailable,
    build_similarity,
    build_validator,
)


class FakeResponse:
    def __init__(self, content, status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return {"choices": [{"message": {"content": self.content}}]}


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "json": json})
        return self.response


class TestFuzzySimilarity:
    def test_similarity(self):
        oracle = FuzzySimilarity()
        assert oracle.similarity("make a figurine of the cat", "the cat figurine make a") == 1.0
        assert oracle.similarity("make a figurine", "paint a sunset over the sea") < 0.8
        assert oracle.stats.to_dict()["total"] == 2

    def test_cannot_score(self):
        with pytest.raises(ValidatorUnavailable):
            FuzzySimilarity().score("anything")

    def test_matches_protocol(self):
        assert isinstance(FuzzySimilarity(), SemanticValidator)


class TestLLMValidator:
    """Test the chat-completions adapter."""

    def test_requires_key(self, monkeypatch):
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        with pytest.raises(ValidatorUnavailable):
            LLMValidator({})

    def test_score_parses_json_reply(self):
        session = FakeSession(FakeResponse('Sure: {"confidence": 0.83}'))
        validator = LLMValidator({"model": "test-model"}, api_key="k", session=session)

        assert validator.score("Create a 3D figurine of the uploaded photo") == 0.83
        sent = session.requests[0]
        assert sent["headers"]["Authorization"] == "Bearer k"
        assert sent["json"]["model"] == "test-model"
        assert validator.stats.to_dict()["success"] == 1

    def test_similarity_clamped(self):
        session = FakeSession(FakeResponse('{"similarity": 1.7}'))
        validator = LLMValidator({}, api_key="k", session=session)
        assert validator.similarity("a", "b") == 1.0

    def test_malformed_reply_raises(self):
        validator = LLMValidator({}, api_key="k", session=FakeSession(FakeResponse("I cannot answer")))
        with pytest.raises(ValueError):
            validator.score("text")
        assert validator.stats.to_dict()["failure"] == 1

    def test_http_error_raises(self):
        validator = LLMValidator({}, api_key="k", session=FakeSession(FakeResponse("", status_code=500)))
        with pytest.raises(requests.HTTPError):
            validator.score("text")


class TestBuilders:
    def test_no_validator_by_default(self):
        assert build_validator({}) is None
        assert build_validator({"validator": {"provider": "none"}}) is None

    def test_llm_without_key_disabled(self, monkeypatch):
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        assert build_validator({"validator": {"provider": "llm"}}) is None

    def test_llm_with_key(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "k")
        assert isinstance(build_validator({"validator": {"provider": "llm"}}), LLMValidator)

    def test_similarity_providers(self):
        validator = object()
        assert isinstance(build_similarity({"dedupe": {"similarity_provider": "fuzzy"}}), FuzzySimilarity)
        assert build_similarity({"dedupe": {"similarity_provider": "validator"}}, validator) is validator
        assert build_similarity({"dedupe": {"similarity_provider": "validator"}}) is None
        assert build_similarity({}) is None
