import json

import pytest

from snackbuilder.graph import (
    STAGE_DONE,
    STAGE_DONE_DRY_RUN,
    STAGE_LOAD_JOB,
    STAGE_PARSE,
    STAGE_PUBLISH,
    STAGE_VERIFY_PAYLOAD,
    SnackbuilderStageError,
    run_snackbuilder_graph,
)
from snackbuilder.store import MemoryPayloadStore
from snackbuilder.utils import ValidationError

TRANSCRIPT = (
    "Here is the app.\n"
    "=== FILE: app/index.tsx ===\n"
    'import { Text } from "react-native";\n'
    'import { useQuery } from "@tanstack/react-query";\n'
    'import Thing from "mystery-lib";\n'
    "export default function Home() { return <Text>hi</Text>; }\n"
    "=== ASSET: assets/icon.png;mime=image/png ===\n"
    "iVBORw0KGgo=\n"
)


def _run(payload, *, dry_run=True, store=None):
    return run_snackbuilder_graph(payload=payload, payload_src="test", dry_run=dry_run, aws_region=None, store=store)


def test_dry_run_builds_files_and_dependencies():
    result = _run({"transcript": TRANSCRIPT})
    assert result["ok"] is True
    assert result["stage"] == STAGE_DONE_DRY_RUN
    assert result["job_payload_source"] == "test"
    assert result["files"] == sorted(
        ["app/index.tsx", "assets/icon.png", "App.js", "app/_layout.tsx", "tsconfig.json", "babel.config.js"]
    )
    assert result["dependencies"]["@tanstack/react-query"] == "^5.51.0"
    assert result["dependencies"]["expo-router"] == "~3.5.22"
    assert "mystery-lib" not in result["dependencies"]
    assert result["unknown_dependencies"] == ["mystery-lib"]
    assert result["code_url"].startswith("memory://snacks/")
    assert result["embed_url"] is None
    assert len(result["job_id"]) == 12


def test_job_id_is_deterministic():
    assert _run({"transcript": TRANSCRIPT})["job_id"] == _run({"transcript": TRANSCRIPT})["job_id"]
    assert _run({"transcript": TRANSCRIPT, "job_id": "fixed"})["job_id"] == "fixed"


def test_published_payload_matches_snack_wire_format():
    store = MemoryPayloadStore()
    result = _run({"transcript": TRANSCRIPT, "name": "Demo"}, dry_run=False, store=store)
    assert result["stage"] == STAGE_DONE
    assert "codeUrl=memory" in result["embed_url"]
    assert result["snack_url"].startswith("https://snack.expo.dev/?")

    doc = json.loads(store.get(f"snacks/{result['job_id']}.json"))
    assert doc["name"] == "Demo"
    assert doc["sdkVersion"] == "53.0.0"
    assert doc["files"]["assets/icon.png"] == {"type": "ASSET", "contents": "iVBORw0KGgo="}
    assert doc["files"]["app/index.tsx"]["type"] == "CODE"
    assert doc["dependencies"] == result["dependencies"]


def test_latest_policy_flows_through_the_job():
    result = _run({"transcript": TRANSCRIPT, "unknown_dependency_policy": "latest"})
    assert result["dependencies"]["mystery-lib"] == "latest"


def test_illegal_path_fails_at_parse_stage():
    with pytest.raises(SnackbuilderStageError) as ei:
        _run({"transcript": "// ../escape.js\nx\n"})
    assert ei.value.stage == STAGE_PARSE
    assert isinstance(ei.value.inner, ValidationError)
    assert ei.value.inner.path == "../escape.js"


def test_invalid_job_fails_at_load_stage():
    with pytest.raises(SnackbuilderStageError) as ei:
        _run({"name": "no transcript"})
    assert ei.value.stage == STAGE_LOAD_JOB


def test_real_run_without_output_fails_at_publish_stage():
    with pytest.raises(SnackbuilderStageError) as ei:
        _run({"transcript": TRANSCRIPT}, dry_run=False)
    assert ei.value.stage == STAGE_PUBLISH
    assert "s3_bucket" in str(ei.value)


def test_blank_transcript_fails_at_load_stage():
    with pytest.raises(SnackbuilderStageError) as ei:
        _run({"transcript": "   \n\t\n"})
    assert ei.value.stage == STAGE_LOAD_JOB
    assert "Transcript is empty" in str(ei.value)


class LosingStore(MemoryPayloadStore):
    """Accepts the upload, then never finds it again."""

    def get(self, key):
        return None


class TruncatingStore(MemoryPayloadStore):
    """Serves back the payload without its dependency map."""

    def get(self, key):
        body = super().get(key)
        doc = json.loads(body)
        doc.pop("dependencies")
        return json.dumps(doc).encode("utf-8")


def test_lost_payload_fails_at_verify_stage():
    with pytest.raises(SnackbuilderStageError) as ei:
        _run({"transcript": TRANSCRIPT}, dry_run=False, store=LosingStore())
    assert ei.value.stage == STAGE_VERIFY_PAYLOAD
    assert "not found" in str(ei.value)


def test_payload_missing_a_field_fails_at_verify_stage():
    with pytest.raises(SnackbuilderStageError) as ei:
        _run({"transcript": TRANSCRIPT}, dry_run=False, store=TruncatingStore())
    assert ei.value.stage == STAGE_VERIFY_PAYLOAD
    assert "missing required fields" in str(ei.value)
