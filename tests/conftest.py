import json

import httpx
import pytest

from lettersmith.core.models import GenerationRequest, RepresentativeOption, Tone
from lettersmith.core.prompt import PromptBuilder

OPENAI_KEY = "sk-test-0123456789abcdefghij"
ANTHROPIC_KEY = "sk-ant-REDACTED"
OPENAI_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_BASE_URL = "https://api.anthropic.com"


# =============================================================================
# DOMAIN FIXTURES
# =============================================================================

@pytest.fixture
def candidates():
    return (
        RepresentativeOption(id=1, name="Jane Doe", title="Senator", state="CA", party="Democratic"),
        RepresentativeOption(id=2, name="John Q", title="Representative", state="CA", district="12"),
    )


@pytest.fixture
def make_request(candidates):
    def _make(**overrides):
        fields = dict(
            main_issue="Public transit funding",
            specific_concern="Bus routes in the Mission are being cut",
            requested_action="Vote for the transit appropriations bill",
            user_name="Alex Rivera",
            user_zip_code="94110",
            available_representatives=candidates,
            tone=Tone.PROFESSIONAL,
            max_length=300,
        )
        fields.update(overrides)
        return GenerationRequest(**fields)

    return _make


@pytest.fixture
def generation_request(make_request):
    return make_request()


@pytest.fixture
def prompt_builder():
    return PromptBuilder.from_path()


# =============================================================================
# WIRE FIXTURES
# =============================================================================

def openai_envelope(text, total_tokens=150):
    payload = {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": "stop",
            }
        ],
    }
    if total_tokens is not None:
        payload["usage"] = {
            "prompt_tokens": total_tokens - 50,
            "completion_tokens": 50,
            "total_tokens": total_tokens,
        }
    return payload


def anthropic_envelope(text, input_tokens=120, output_tokens=80):
    content = [] if text is None else [{"type": "text", "text": text}]
    return {
        "id": "msg_test",
        "type": "message",
        "role": "assistant",
        "model": "claude-3-sonnet-20240229",
        "content": content,
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


class RecordingTransport:
    """Serves canned responses and keeps every request it saw."""

    def __init__(self, responder):
        self.responder = responder
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.responder(request)

    def json_body(self, idx=0):
        return json.loads(self.requests[idx].content)

    def sync_client(self):
        return httpx.Client(transport=httpx.MockTransport(self))

    def async_client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def json_responder(payload, status_code=200):
    def _respond(request):
        return httpx.Response(status_code, json=payload)

    return _respond
