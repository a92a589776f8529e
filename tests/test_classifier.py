"""Tests for form type detection."""

import json

import pytest

from form_brain.classifier import (
    classify,
    classify_by_keywords,
    classify_by_prompt,
    collect_text,
    detect,
    match_label,
    score_text,
)
from form_brain.gemini_client import InferenceError, InferenceResult
from form_brain.models import FormType
from form_brain.prompts import CLASSIFY_PROMPT, PROMPTS


def _answer(text: str) -> InferenceResult:
    return InferenceResult(text=text, model="model-a")


class TestMatchLabel:
    @pytest.mark.parametrize(
        "answer, expected",
        [
            ("DA2062", FormType.HAND_RECEIPT),
            ("  da 2062\n", FormType.HAND_RECEIPT),
            ("This is a HAND RECEIPT", FormType.HAND_RECEIPT),
            ("DA3161", FormType.REQUEST_TURN_IN),
            ("Request for Issue or Turn-In", FormType.REQUEST_TURN_IN),
            ("OCIE", FormType.EQUIPMENT_RECORD),
            ("DA Form 3645", FormType.EQUIPMENT_RECORD),
            ("GENERIC", FormType.GENERIC),
            ("", FormType.GENERIC),
            ("I am not sure what this is", FormType.GENERIC),
        ],
    )
    def test_labels(self, answer, expected):
        assert match_label(answer) == expected


class TestScoreText:
    def test_hand_receipt_keywords_win(self):
        verdict = score_text("hand receipt annex number from: to: stock number")
        assert verdict.form_type == FormType.HAND_RECEIPT
        assert verdict.scores[FormType.HAND_RECEIPT] == 5

    def test_no_keywords_is_generic_with_zero_counts(self):
        verdict = score_text("coffee mug borrowed by bob")
        assert verdict.form_type == FormType.GENERIC
        assert set(verdict.scores.values()) == {0}

    def test_single_ocie_hit_meets_its_threshold(self):
        assert score_text("nomenclature").form_type == FormType.EQUIPMENT_RECORD

    def test_single_hand_receipt_hit_is_below_threshold(self):
        verdict = score_text("publication")
        assert verdict.scores[FormType.HAND_RECEIPT] == 1
        assert verdict.form_type == FormType.GENERIC

    def test_tie_at_the_top_is_generic(self):
        verdict = score_text("da form 2062 annex number da form 3161 dodaac")
        assert verdict.scores[FormType.HAND_RECEIPT] == verdict.scores[FormType.REQUEST_TURN_IN] == 2
        assert verdict.form_type == FormType.GENERIC

    @pytest.mark.parametrize("overrides", [{"DA2062": 1}, {FormType.HAND_RECEIPT: 1}])
    def test_threshold_override(self, overrides):
        assert score_text("publication", overrides).form_type == FormType.HAND_RECEIPT

    def test_unknown_threshold_key_ignored(self):
        assert score_text("nomenclature", {"DA9999": 5}).form_type == FormType.EQUIPMENT_RECORD

    def test_case_insensitive(self):
        assert score_text("REQUEST FOR ISSUE DODAAC").form_type == FormType.REQUEST_TURN_IN

    def test_same_text_same_verdict(self):
        text = "rank/grade ssn/pid cif code nomenclature"
        assert score_text(text) == score_text(text)


class TestCollectText:
    def test_walks_nested_strings(self):
        obj = {"a": "Hand Receipt", "b": [{"c": "DODAAC"}, 3], "d": None}
        assert collect_text(obj) == "hand receipt dodaac"


class TestClassifyByPrompt:
    def test_uses_model_label(self, fake_image, mock_client):
        mock_client.infer.return_value = _answer("DA3161")

        assert classify_by_prompt(fake_image, "image/jpeg", mock_client) == FormType.REQUEST_TURN_IN
        assert mock_client.infer.call_args.args[2] == CLASSIFY_PROMPT

    def test_inference_failure_is_generic(self, fake_image, mock_client):
        mock_client.infer.side_effect = InferenceError("All candidate models failed")

        assert classify_by_prompt(fake_image, "image/jpeg", mock_client) == FormType.GENERIC


class TestClassifyByKeywords:
    def test_detects_form_from_generic_extraction(self, fake_image, mock_client):
        data = {"itemName": "DA FORM 2062 Hand Receipt", "notes": "stock number and item description columns"}
        mock_client.infer.return_value = _answer(json.dumps(data))

        verdict = classify_by_keywords(fake_image, "image/jpeg", mock_client)

        assert verdict.form_type == FormType.HAND_RECEIPT
        assert mock_client.infer.call_args.args[2] == PROMPTS[FormType.GENERIC]

    def test_generic_verdict_keeps_parsed_data(self, fake_image, mock_client, generic_response):
        mock_client.infer.return_value = _answer(generic_response)

        verdict = classify_by_keywords(fake_image, "image/jpeg", mock_client)

        assert verdict.form_type == FormType.GENERIC
        assert verdict.generic_data["itemName"] == "Coffee mug"

    def test_unparseable_answer_is_generic(self, fake_image, mock_client):
        mock_client.infer.return_value = _answer("no json here")

        verdict = classify_by_keywords(fake_image, "image/jpeg", mock_client)

        assert verdict.form_type == FormType.GENERIC
        assert verdict.generic_data == {}


class TestClassify:
    def test_prompt_mode(self, fake_image, mock_client):
        mock_client.infer.return_value = _answer("OCIE")
        assert classify(fake_image, "image/jpeg", mock_client, mode="prompt") == FormType.EQUIPMENT_RECORD

    def test_keywords_mode(self, fake_image, mock_client):
        mock_client.infer.return_value = _answer(json.dumps({"notes": "rank/grade ssn/pid"}))
        assert classify(fake_image, "image/jpeg", mock_client, mode="keywords") == FormType.EQUIPMENT_RECORD

    def test_unexpected_error_is_generic(self, fake_image, mock_client):
        mock_client.infer.side_effect = RuntimeError("boom")
        assert classify(fake_image, "image/jpeg", mock_client, mode="prompt") == FormType.GENERIC

    @pytest.mark.parametrize("mode", ["prompt", "keywords"])
    def test_unexpected_error_is_generic_in_either_mode(self, fake_image, mock_client, mode):
        mock_client.infer.side_effect = RuntimeError("boom")

        verdict = detect(fake_image, "image/jpeg", mock_client, mode=mode)

        assert verdict.form_type == FormType.GENERIC
        assert verdict.generic_data == {}

    def test_detect_keeps_generic_data_for_dedicated_verdict(self, fake_image, mock_client):
        data = {"itemName": "DA FORM 2062 Hand Receipt", "notes": "stock number column"}
        mock_client.infer.return_value = _answer(json.dumps(data))

        verdict = detect(fake_image, "image/jpeg", mock_client, mode="keywords")

        assert verdict.form_type == FormType.HAND_RECEIPT
        assert verdict.generic_data == data
