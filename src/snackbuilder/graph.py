# src/snackbuilder/graph.py
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, TypedDict

from snackbuilder.dependencies import analyze_dependencies
from snackbuilder.models import DependencyMap, FileMap, PreviewJob, PreviewPayload
from snackbuilder.parser import parse
from snackbuilder.preview import embed_url, snack_url
from snackbuilder.scaffold import augment
from snackbuilder.store import MemoryPayloadStore, PayloadStore, S3PayloadStore, payload_key
from snackbuilder.utils import sha256_bytes

try:
    from langgraph.graph import END, StateGraph
except Exception as e:  # pragma: no cover
    raise RuntimeError("LangGraph is required. Install 'langgraph'.") from e


# -----------------------------
# Stages (canonical)
# -----------------------------
STAGE_INIT = "init"
STAGE_LOAD_JOB = "load_job"
STAGE_PARSE = "parse"
STAGE_SCAFFOLD = "scaffold"
STAGE_DEPENDENCIES = "dependencies"
STAGE_BUILD_PAYLOAD = "build_payload"
STAGE_PUBLISH = "publish"
STAGE_VERIFY_PAYLOAD = "verify_payload"
STAGE_EMIT_RESULT = "emit_result"
STAGE_DONE = "done"
STAGE_DONE_DRY_RUN = "done_dry_run"


class SnackbuilderStageError(RuntimeError):
    def __init__(self, stage: str, inner: Exception):
        super().__init__(str(inner))
        self.stage = stage
        self.inner = inner


@dataclass(frozen=True)
class RuntimeConfig:
    dry_run: bool
    aws_region: str | None
    # hosting-layer override; None => memory store on dry runs, S3 otherwise
    store: Optional[PayloadStore] = None


class SnackbuilderState(TypedDict, total=False):
    payload: dict[str, Any]
    payload_src: str
    config: RuntimeConfig
    stage: str

    job: PreviewJob

    parsed_files: FileMap
    files: FileMap
    dependencies: DependencyMap
    unknown_dependencies: list[str]

    preview_payload: PreviewPayload
    payload_body: bytes

    payload_store: PayloadStore
    payload_key: str
    code_url: str
    result: dict[str, Any]


def _select_store(job: PreviewJob, cfg: RuntimeConfig) -> PayloadStore:
    if cfg.store is not None:
        return cfg.store
    if cfg.dry_run:
        return MemoryPayloadStore()
    if job.output is None:
        raise RuntimeError("output.s3_bucket is required unless running with --dry-run.")
    return S3PayloadStore(
        bucket=job.output.s3_bucket,
        prefix=job.output.s3_prefix,
        region=cfg.aws_region,
        url_expires_in=job.output.url_expires_in,
    )


def node_load_job(state: SnackbuilderState) -> SnackbuilderState:
    stage = STAGE_LOAD_JOB
    try:
        state["job"] = PreviewJob.model_validate(state["payload"]).finalize()
        state["stage"] = stage
        return state
    except Exception as e:
        raise SnackbuilderStageError(stage, e) from e


def node_parse(state: SnackbuilderState) -> SnackbuilderState:
    stage = STAGE_PARSE
    try:
        state["parsed_files"] = parse(state["job"].transcript)
        state["stage"] = stage
        return state
    except Exception as e:
        raise SnackbuilderStageError(stage, e) from e


def node_scaffold(state: SnackbuilderState) -> SnackbuilderState:
    stage = STAGE_SCAFFOLD
    try:
        state["files"] = augment(state["parsed_files"])
        state["stage"] = stage
        return state
    except Exception as e:
        raise SnackbuilderStageError(stage, e) from e


def node_dependencies(state: SnackbuilderState) -> SnackbuilderState:
    stage = STAGE_DEPENDENCIES
    try:
        report = analyze_dependencies(state["files"], unknown_policy=state["job"].unknown_dependency_policy)
        state["dependencies"] = report.dependencies
        state["unknown_dependencies"] = list(report.unknown)
        state["stage"] = stage
        return state
    except Exception as e:
        raise SnackbuilderStageError(stage, e) from e


def node_build_payload(state: SnackbuilderState) -> SnackbuilderState:
    stage = STAGE_BUILD_PAYLOAD
    try:
        job = state["job"]
        preview_payload = PreviewPayload(
            name=job.name,
            sdk_version=job.sdk_version,
            dependencies=state["dependencies"],
            files=state["files"],
        )
        state["preview_payload"] = preview_payload
        state["payload_body"] = preview_payload.to_json().encode("utf-8")
        state["stage"] = stage
        return state
    except Exception as e:
        raise SnackbuilderStageError(stage, e) from e


def node_publish(state: SnackbuilderState) -> SnackbuilderState:
    stage = STAGE_PUBLISH
    try:
        job = state["job"]
        store = _select_store(job, state["config"])
        key = payload_key(job.job_id or "job")
        state["code_url"] = store.put(key, state["payload_body"])
        state["payload_store"] = store
        state["payload_key"] = key
        state["stage"] = stage
        return state
    except Exception as e:
        raise SnackbuilderStageError(stage, e) from e


REQUIRED_PAYLOAD_FIELDS = ("files", "dependencies", "sdkVersion")


def node_verify_payload(state: SnackbuilderState) -> SnackbuilderState:
    """
    Read the published payload back through the same store.
    A lost or truncated payload fails here instead of in the preview iframe.
    """
    stage = STAGE_VERIFY_PAYLOAD
    try:
        key = state["payload_key"]
        body = state["payload_store"].get(key)
        if body is None:
            raise RuntimeError(f"Published payload not found at {key!r}.")

        doc = json.loads(body)
        if not isinstance(doc, dict) or any(f not in doc for f in REQUIRED_PAYLOAD_FIELDS):
            raise RuntimeError("codeUrl JSON missing required fields (files/dependencies/sdkVersion).")

        state["stage"] = stage
        return state
    except Exception as e:
        raise SnackbuilderStageError(stage, e) from e


def node_emit_result(state: SnackbuilderState) -> SnackbuilderState:
    stage = STAGE_EMIT_RESULT
    try:
        job = state["job"]
        cfg = state["config"]
        code_url = state["code_url"]

        result: dict[str, Any] = {
            "ok": True,
            "stage": STAGE_DONE_DRY_RUN if cfg.dry_run else STAGE_DONE,
            "job_id": job.job_id,
            "name": job.name,
            "sdk_version": job.sdk_version,
            "job_payload_source": state.get("payload_src", "unknown"),
            "files": sorted(state["files"]),
            "dependencies": state["dependencies"],
            "unknown_dependencies": state.get("unknown_dependencies", []),
            "code_url": code_url,
            "embed_url": None,
            "snack_url": None,
            "payload_sha256": sha256_bytes(state["payload_body"]),
        }
        # a dry-run code_url is process-local, the preview service cannot fetch it
        if not cfg.dry_run:
            result["embed_url"] = embed_url(code_url, sdk_version=job.sdk_version, name=job.name)
            result["snack_url"] = snack_url(code_url, sdk_version=job.sdk_version, name=job.name)

        state["result"] = result
        state["stage"] = stage
        return state
    except Exception as e:
        raise SnackbuilderStageError(stage, e) from e


def build_snackbuilder_graph():
    g = StateGraph(SnackbuilderState)

    g.add_node("load_job", node_load_job)
    g.add_node("parse_transcript", node_parse)
    g.add_node("scaffold_files", node_scaffold)
    g.add_node("derive_dependencies", node_dependencies)
    g.add_node("build_payload", node_build_payload)
    g.add_node("publish_payload", node_publish)
    g.add_node("verify_payload", node_verify_payload)
    g.add_node("emit_result", node_emit_result)

    g.set_entry_point("load_job")
    g.add_edge("load_job", "parse_transcript")
    g.add_edge("parse_transcript", "scaffold_files")
    g.add_edge("scaffold_files", "derive_dependencies")
    g.add_edge("derive_dependencies", "build_payload")
    g.add_edge("build_payload", "publish_payload")
    g.add_edge("publish_payload", "verify_payload")
    g.add_edge("verify_payload", "emit_result")
    g.add_edge("emit_result", END)

    return g.compile()


def run_snackbuilder_graph(
        *,
        payload: dict[str, Any],
        payload_src: str,
        dry_run: bool,
        aws_region: str | None,
        store: PayloadStore | None = None,
) -> dict[str, Any]:
    app = build_snackbuilder_graph()
    state: SnackbuilderState = {
        "payload": payload,
        "payload_src": payload_src,
        "config": RuntimeConfig(dry_run=dry_run, aws_region=aws_region, store=store),
        "stage": STAGE_INIT,
    }
    final_state = app.invoke(state)
    return final_state["result"]
