from __future__ import annotations

from uuid import uuid4

import pytest
from pydantic import ValidationError

from mdmlink.adapters.remote_matcher import (
    ConfigurationPayload,
    MatchResponse,
    ResultPayload,
    parse_results,
    record_to_payload,
)
from mdmlink.adapters.remote_matcher.schema import ErrorResponse
from mdmlink.domain.model import MatchClassification, MatchMethod
from tests.helpers.records import make_patient


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("match", MatchClassification.MATCH),
        (" PROBABLE ", MatchClassification.PROBABLE),
        ("Non-Match", MatchClassification.NON_MATCH),
        ("nonmatch", MatchClassification.NON_MATCH),
        ("non_match", MatchClassification.NON_MATCH),
    ],
)
def test_classification_spellings_are_normalized(raw: str, expected: MatchClassification) -> None:
    payload = ResultPayload.model_validate({"recordId": str(uuid4()), "classification": raw})

    assert payload.classification is expected
    assert payload.method is MatchMethod.WEIGHTED


def test_result_payload_accepts_alias_and_field_name() -> None:
    key = uuid4()
    by_alias = ResultPayload.model_validate(
        {"recordId": str(key), "classification": "match", "method": "Identifier", "extra": 1}
    )
    by_name = ResultPayload(record_id=key, classification=MatchClassification.MATCH)

    assert by_alias.record_id == by_name.record_id == key
    assert by_alias.method is MatchMethod.IDENTIFIER


def test_invalid_classification_is_rejected() -> None:
    with pytest.raises(ValidationError):
        MatchResponse.model_validate(
            {"results": [{"recordId": str(uuid4()), "classification": "perhaps"}]}
        )


def test_configuration_and_error_payloads() -> None:
    configuration = ConfigurationPayload.model_validate({"name": "default", "autoLink": True})
    error = ErrorResponse.model_validate({"error": "boom"})

    assert configuration.auto_link
    assert not ConfigurationPayload(name="strict").auto_link
    assert (error.error, error.code) == ("boom", None)


def test_record_payload_and_result_translation() -> None:
    patient = make_patient(identifiers=[("MDM", "1")])
    payload = record_to_payload(patient)
    known = ResultPayload.model_validate({"recordId": str(patient.id), "classification": "match"})
    stray = ResultPayload.model_validate({"recordId": str(uuid4()), "classification": "match"})

    assert payload.id == patient.id
    assert payload.classification == "LOCAL"
    assert payload.attributes["date_of_birth"] == "1983-01-10"
    (result,) = parse_results([known, stray], {patient.id: patient}, "remote")
    assert result.record is patient
    assert result.configuration == "remote"
