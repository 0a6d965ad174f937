"""Prompt templates and the OpenAI providers (client mocked)"""
from types import SimpleNamespace
from unittest.mock import Mock

import httpx
import numpy as np
import pytest
from openai import APIConnectionError, APITimeoutError

from libs.embed.openai_provider import OpenAIEmbeddingProvider
from libs.errors import AIMatchingError
from libs.llm.match_prompts import FreeMatchPrompt, PremiumMatchPrompt, prompt_for
from libs.llm.openai_provider import OpenAILLMProvider

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


# ---------------- prompts ----------------

def test_prompt_selection(free_user, premium_user):
    assert prompt_for(free_user) is FreeMatchPrompt
    assert prompt_for(premium_user) is PremiumMatchPrompt
    pending = premium_user.model_copy(update={"subscription_tier": "premium_pending"})
    assert prompt_for(pending) is PremiumMatchPrompt


def test_free_prompt_lists_jobs_with_zero_based_indices(free_user, make_job):
    jobs = [make_job(), make_job(title="Data Analyst", city=None, location="Remote")]
    prompt = FreeMatchPrompt.build_prompt(free_user, jobs)
    assert 'STUDENT REQUEST: "Tech & Transformation roles in London"' in prompt
    assert "- Visa status: EU citizen" in prompt
    assert "0: Software Engineer | Company 1 | London | Categories: tech, early-career | Level: entry-level" in prompt
    assert "1: Data Analyst | Company 2 | Remote |" in prompt
    assert prompt.rstrip().endswith("Level: entry-level")


def test_premium_prompt_uses_full_profile(premium_user, make_job):
    prompt = PremiumMatchPrompt.build_prompt(premium_user, [make_job(city="Berlin", categories=[])])
    assert "- Career paths: Data & Analytics" in prompt
    assert "- Technical & soft skills: SQL, Python" in prompt
    assert "- Preferred industries: Fintech" in prompt
    assert "- Company size preference: Open" in prompt
    assert "0: Software Engineer | Company 1 | Berlin | Industry: Tech" in prompt


def test_prompt_configs():
    assert FreeMatchPrompt.get_config()["max_matches"] == 5
    assert PremiumMatchPrompt.get_match_count() == 15
    assert PremiumMatchPrompt.get_config() == {
        "use_ai": True,
        "max_jobs_for_ai": 30,
        "max_matches": 15,
        "fallback_threshold": 3,
        "include_prefilter_score": True,
    }


# ---------------- chat provider ----------------

def completion(content, tokens=42):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=SimpleNamespace(total_tokens=tokens))


@pytest.fixture
def provider():
    p = OpenAILLMProvider(api_key="sk-test", model="gpt-4o-mini")
    p.client = Mock()
    return p


def test_complete_returns_content(provider):
    provider.client.chat.completions.create.return_value = completion('{"matches": []}')
    response = provider.complete("system", "user")
    assert response.content == '{"matches": []}'
    assert response.tokens_used == 42
    assert response.model_used == "gpt-4o-mini"
    kwargs = provider.client.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0] == {"role": "system", "content": "system"}


@pytest.mark.parametrize("error,reason", [
    (APITimeoutError(request=REQUEST), "timeout"),
    (APIConnectionError(request=REQUEST), "provider_error"),
])
def test_complete_maps_client_errors(provider, error, reason):
    provider.client.chat.completions.create.side_effect = error
    with pytest.raises(AIMatchingError) as exc:
        provider.complete("system", "user")
    assert exc.value.reason == reason


def test_complete_rejects_empty_content(provider):
    provider.client.chat.completions.create.return_value = completion("   ")
    with pytest.raises(AIMatchingError) as exc:
        provider.complete("system", "user")
    assert exc.value.reason == "empty_response"


def test_invalid_key_is_not_configured():
    p = OpenAILLMProvider(api_key="not-a-key")
    assert not p.is_configured()
    assert p.client is None
    with pytest.raises(AIMatchingError) as exc:
        p.complete("system", "user")
    assert exc.value.reason == "missing_api_key"


def test_estimate_cost(provider):
    assert provider.estimate_cost(1000, 1000) == pytest.approx(0.00075)


# ---------------- embedding provider ----------------

def test_embed_batch_skips_empty_texts():
    client = Mock()
    client.embeddings.create.return_value = SimpleNamespace(data=[SimpleNamespace(embedding=[0.5, 0.25])])
    provider = OpenAIEmbeddingProvider(client=client)
    vectors = provider.embed_batch(["", "Data Analyst at Acme"])
    assert client.embeddings.create.call_args.kwargs["input"] == ["Data Analyst at Acme"]
    assert vectors[0].shape == (1536,)
    assert not vectors[0].any()
    np.testing.assert_allclose(vectors[1], [0.5, 0.25])


def test_embedding_provider_without_key():
    provider = OpenAIEmbeddingProvider(api_key=None)
    assert not provider.is_configured()
    assert provider.embed_batch([]) == []
    with pytest.raises(RuntimeError):
        provider.embed_batch(["text"])
    assert provider.get_dimension() == 1536
    assert OpenAIEmbeddingProvider(model="text-embedding-3-large").get_dimension() == 3072
