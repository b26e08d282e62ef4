# src/snackbuilder/models.py
from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from snackbuilder.utils import stable_json_fingerprint_sha256, utc_ts

DEFAULT_PREVIEW_NAME = "LLM Preview"
DEFAULT_SDK_VERSION = "53.0.0"


class FileEntry(BaseModel):
    """One virtual file. Serialized as {"type": ..., "contents": ...} for Snack."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Literal["CODE", "ASSET"] = Field(alias="type")
    contents: str

    @classmethod
    def code(cls, contents: str) -> "FileEntry":
        return cls(kind="CODE", contents=contents)

    @classmethod
    def asset(cls, contents: str) -> "FileEntry":
        return cls(kind="ASSET", contents=contents)


FileMap = dict[str, FileEntry]
DependencyMap = dict[str, str]


class PreviewPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = DEFAULT_PREVIEW_NAME
    sdk_version: str = Field(default=DEFAULT_SDK_VERSION, alias="sdkVersion")
    dependencies: DependencyMap = Field(default_factory=dict)
    files: FileMap = Field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True), separators=(",", ":"), ensure_ascii=False)


class Output(BaseModel):
    s3_bucket: str
    s3_prefix: str = "snacks"
    url_expires_in: int = Field(default=3600, gt=0)


class PreviewJob(BaseModel):
    job_id: str | None = None
    name: str = DEFAULT_PREVIEW_NAME
    sdk_version: str = DEFAULT_SDK_VERSION
    transcript: str
    unknown_dependency_policy: Literal["omit", "latest"] = "omit"
    output: Output | None = None

    # derived at runtime
    timestamp_utc: str | None = None

    @field_validator("transcript")
    @classmethod
    def transcript_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Transcript is empty: paste or upload the LLM .txt first.")
        return v

    def finalize(self) -> "PreviewJob":
        """
        Contract:
        - No randomness: a missing job_id is derived from the job's canonical content.
        - timestamp_utc may vary per run, identity (job_id) must not.
        """
        self.timestamp_utc = utc_ts()
        if not self.job_id:
            fp = stable_json_fingerprint_sha256(self.model_dump(mode="python"))
            self.job_id = fp[:12]
        return self
