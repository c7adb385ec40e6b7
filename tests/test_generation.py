"""
程式碼生成 / 視覺驗證 client 測試（mock requests），prompt 內容與品質評分
"""
from unittest.mock import MagicMock, patch

import pytest
import requests

from figma_mapper.config import PipelineConfig
from figma_mapper.errors import ExternalServiceError, TransientExternalError
from figma_mapper.generation import (
    CodeGenerator,
    HttpVisualValidator,
    OpenRouterGenerator,
    assess_code_quality,
    build_generation_prompt,
    format_properties_for_prompt,
    quality_score,
    strip_code_fences,
)
from figma_mapper.orchestrator import Pipeline
from figma_mapper.scene_graph import ingest_node

SEND_BUTTON = {
    "id": "1:1",
    "name": "Button",
    "type": "INSTANCE",
    "height": 36,
    "componentProperties": {"Button Text#1": {"type": "TEXT", "value": "Send"}},
    "children": [
        {"id": "1:2", "name": "Icon / Send", "type": "INSTANCE"},
        {"id": "1:3", "name": "Send", "type": "TEXT", "characters": "Send"},
        {"id": "1:4", "name": "Icon / Circle", "type": "INSTANCE"},
    ],
}

GOOD_CODE = """import React from 'react';
import { Button } from '@/components/ui/button';

interface SendButtonProps {
  onClick?: () => void;
}

export function SendButton({ onClick }: SendButtonProps) {
  return <Button className="gap-2" aria-label="Send" onClick={onClick}>Send</Button>;
}
"""


def make_record(raw=SEND_BUTTON):
    pipeline = Pipeline(PipelineConfig(enable_generation=False, enable_caching=False))
    return pipeline.analyze(ingest_node(raw))


def make_response(status=200, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    resp.json.return_value = payload if payload is not None else {}
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}")
    return resp


def completion(content):
    return {"choices": [{"message": {"content": content}}]}


class TestPrompt:

    def test_properties_summary(self):
        summary = format_properties_for_prompt(make_record())
        assert summary.startswith("# Button Analysis")
        assert '- Text: "Send"' in summary
        assert "- Size: sm (inferred)" in summary
        assert "- Left Icon: Send" in summary
        assert "- Right Icon: none" in summary

    def test_prompt_includes_mapping_and_icons(self):
        prompt = build_generation_prompt(make_record())
        assert "- Type: Button" in prompt
        assert "- Confidence: 100.0%" in prompt
        assert '"leftIcon": "1:2"' in prompt
        assert "import { Send } from 'lucide-react';" in prompt

    def test_prompt_lists_mapping_warnings(self):
        raw = {"id": "9", "name": "Button", "type": "INSTANCE", "children": [
            {"id": "a", "name": "Icon / Plus", "type": "INSTANCE"},
        ]}
        prompt = build_generation_prompt(make_record(raw))
        assert "required slot 'label'" in prompt


@pytest.mark.parametrize("text, expected", [
    ("```tsx\nconst a = 1;\n```", "const a = 1;"),
    ("```\nx\n```\n", "x"),
    ("plain code", "plain code"),
])
def test_strip_code_fences(text, expected):
    assert strip_code_fences(text) == expected


class TestOpenRouterGenerator:

    def _generator(self):
        return OpenRouterGenerator(api_key="sk-test", model="test/model", timeout=5)

    def test_satisfies_protocol(self):
        assert isinstance(self._generator(), CodeGenerator)

    def test_auth_header(self):
        assert self._generator().session.headers["Authorization"] == "Bearer sk-test"

    @patch("figma_mapper.generation.requests.Session.post")
    def test_success(self, mock_post):
        mock_post.return_value = make_response(payload=completion("```tsx\n" + GOOD_CODE + "```"))
        code = self._generator().generate(make_record())
        assert code.startswith("import React")
        payload = mock_post.call_args.kwargs["json"]
        assert payload["model"] == "test/model"
        assert "Send" in payload["messages"][0]["content"]
        assert mock_post.call_args.kwargs["timeout"] == 5

    @pytest.mark.parametrize("status", [429, 500, 503])
    @patch("figma_mapper.generation.requests.Session.post")
    def test_retryable_status(self, mock_post, status):
        mock_post.return_value = make_response(status=status)
        with pytest.raises(TransientExternalError):
            self._generator().generate(make_record())

    @pytest.mark.parametrize("exc", [requests.Timeout("slow"), requests.ConnectionError("down")])
    @patch("figma_mapper.generation.requests.Session.post")
    def test_network_errors_are_transient(self, mock_post, exc):
        mock_post.side_effect = exc
        with pytest.raises(TransientExternalError):
            self._generator().generate(make_record())

    @patch("figma_mapper.generation.requests.Session.post")
    def test_client_error_is_not_retryable(self, mock_post):
        mock_post.return_value = make_response(status=400, text="bad request")
        with pytest.raises(ExternalServiceError, match="400"):
            self._generator().generate(make_record())

    @patch("figma_mapper.generation.requests.Session.post")
    def test_missing_choices(self, mock_post):
        mock_post.return_value = make_response(payload={"error": "nope"})
        with pytest.raises(ExternalServiceError, match="choices"):
            self._generator().generate(make_record())

    @patch("figma_mapper.generation.requests.Session.post")
    def test_non_json_body(self, mock_post):
        resp = make_response()
        resp.json.side_effect = ValueError("not json")
        mock_post.return_value = resp
        with pytest.raises(ExternalServiceError, match="not JSON"):
            self._generator().generate(make_record())


@patch("figma_mapper.generation.requests.Session.post")
def test_visual_validator_posts_record_and_code(mock_post):
    mock_post.return_value = make_response(payload={"passed": True, "score": 0.97})
    validator = HttpVisualValidator("http://validator.local/validate", timeout=3, api_key="v")
    report = validator.validate(make_record(), GOOD_CODE)
    assert report == {"passed": True, "score": 0.97}
    url = mock_post.call_args.args[0]
    body = mock_post.call_args.kwargs["json"]
    assert url == "http://validator.local/validate"
    assert body["code"] == GOOD_CODE
    assert body["record"]["nodeId"] == "1:1"
    assert validator.session.headers["Authorization"] == "Bearer v"


class TestQuality:

    def test_good_code_passes(self):
        flags = assess_code_quality(GOOD_CODE)
        assert all(flags.values())
        assert quality_score(flags) == 100

    def test_bare_code_scores_low(self):
        flags = assess_code_quality("const x = 1;")
        assert quality_score(flags) == 0
