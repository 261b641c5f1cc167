from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from openai import OpenAIError

from weathere.errors import GenerationFailure
from weathere.service.summarizer import OpenAISummarizer, build_summarizer


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_summarize_sends_system_and_user_messages():
    client = Mock()
    client.chat.completions.create.return_value = _response("  Mostly accurate.  ")
    summarizer = OpenAISummarizer(api_key="sk-test", model="gpt-test", client=client)

    assert summarizer.summarize("system", "prompt", 220) == "Mostly accurate."

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-test"
    assert kwargs["max_tokens"] == 220
    assert kwargs["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "prompt"},
    ]


@pytest.mark.parametrize("response", [_response(""), _response(None), SimpleNamespace(choices=[])])
def test_empty_response_is_a_generation_failure(response):
    client = Mock()
    client.chat.completions.create.return_value = response
    with pytest.raises(GenerationFailure):
        OpenAISummarizer(api_key="sk-test", client=client).summarize("s", "p", 10)


def test_client_error_is_a_generation_failure():
    client = Mock()
    client.chat.completions.create.side_effect = OpenAIError("rate limited")
    with pytest.raises(GenerationFailure, match="rate limited"):
        OpenAISummarizer(api_key="sk-test", client=client).summarize("s", "p", 10)


def test_build_summarizer_requires_api_key():
    assert build_summarizer(None) is None
    assert build_summarizer("") is None
    summarizer = build_summarizer("sk-test", model="gpt-x", timeout_seconds=3)
    assert summarizer.label == "gpt-x"
    assert summarizer.timeout_seconds == 3
