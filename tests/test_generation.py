"""Tests for answer generation and trust scoring."""

import json

import httpx
import pytest

from app.domains.projects.generation import AnswerGenerator
from app.domains.projects.trust import calculate_trust_score

SERVICE_URL = "http://answers.test/generate"


def make_generator(handler):
    return AnswerGenerator(base_url=SERVICE_URL, api_key="key-1", timeout=5.0, transport=httpx.MockTransport(handler))


class TestTrustScore:
    def test_score_within_bounds(self):
        result = calculate_trust_score("", "What is your uptime?")

        assert 0 <= result["score"] <= 100
        assert result["label"] == "low"

    def test_rich_answer_scores_higher(self):
        question = "Describe your security certifications and audit process"
        weak = calculate_trust_score("We are secure.", question)
        strong = calculate_trust_score(
            "Our company holds ISO 27001 and SOC 2 Type II security certifications.\n\n"
            "- Annual external audit process covering 100% of production systems\n"
            "- Quarterly internal reviews over the last 5 years\n"
            "Our team describes every finding in a remediation plan within 30 days.",
            question,
            sources=["iso.pdf", "soc2.pdf", "policy.docx"]
        )

        assert strong["score"] > weak["score"]
        assert strong["breakdown"]["sources"] == 25
        assert strong["breakdown"]["specificity"] == 15


class TestAnswerGenerator:
    async def test_successful_generation(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "We support SAML SSO.", "trust_score": 88, "sources": ["sso.md"]})

        answer = await make_generator(handler).generate("Do you support SSO?", context="Security")

        assert answer.response == "We support SAML SSO."
        assert answer.trust_score == 88
        assert answer.sources == ["sso.md"]
        assert not answer.fallback
        assert seen["auth"] == "Bearer key-1"
        assert seen["body"] == {"question": "Do you support SSO?", "context": "Security"}

    async def test_missing_trust_score_is_computed(self):
        def handler(request):
            return httpx.Response(200, json={"response": "Our team has 10 years of experience."})

        answer = await make_generator(handler).generate("How much experience does your team have?")

        assert 0 <= answer.trust_score <= 100
        assert not answer.fallback

    async def test_server_error_falls_back(self):
        def handler(request):
            return httpx.Response(500, json={"error": "down"})

        answer = await make_generator(handler).generate("Do you support SSO?")

        assert answer.fallback
        assert "Do you support SSO?" in answer.response

    async def test_timeout_falls_back(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        answer = await make_generator(handler).generate("Do you support SSO?")

        assert answer.fallback

    async def test_empty_response_falls_back(self):
        def handler(request):
            return httpx.Response(200, json={"response": "   "})

        answer = await make_generator(handler).generate("Do you support SSO?")

        assert answer.fallback

    @pytest.mark.parametrize("body", [["oops"], "plain string", 42, {"response": "ok", "sources": "not-a-list"}])
    async def test_unexpected_body_falls_back(self, body):
        def handler(request):
            return httpx.Response(200, json=body)

        answer = await make_generator(handler).generate("Do you support SSO?")

        assert answer.fallback

    async def test_non_json_body_falls_back(self):
        def handler(request):
            return httpx.Response(200, text="<html>gateway error</html>")

        answer = await make_generator(handler).generate("Do you support SSO?")

        assert answer.fallback

    @pytest.mark.parametrize("raw,expected", [(250, 100), (-5, 0), (87.6, 88), ("42", 42)])
    async def test_trust_score_clamped(self, raw, expected):
        def handler(request):
            return httpx.Response(200, json={"response": "We support SSO.", "trust_score": raw})

        answer = await make_generator(handler).generate("Do you support SSO?")

        assert not answer.fallback
        assert answer.trust_score == expected

    async def test_non_numeric_trust_score_falls_back(self):
        def handler(request):
            return httpx.Response(200, json={"response": "We support SSO.", "trust_score": "very high"})

        answer = await make_generator(handler).generate("Do you support SSO?")

        assert answer.fallback
        assert 0 <= answer.trust_score <= 100

    async def test_no_service_configured(self):
        answer = await AnswerGenerator(base_url="").generate("Do you support SSO?")

        assert answer.fallback
        assert answer.trust_score >= 0
