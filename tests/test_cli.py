import json
import os
import subprocess
import sys


def run_cli(args: list[str] | None = None, env: dict[str, str] | None = None, stdin: str | None = None) -> subprocess.CompletedProcess:
    cmd = [sys.executable, "-m", "snackbuilder.cli"]
    if args:
        cmd.extend(args)
    env_vars = os.environ.copy()
    env_vars.pop("SNACKBUILDER_S3_BUCKET", None)
    env_vars.pop("SNACKBUILDER_S3_PREFIX", None)
    if env:
        env_vars.update(env)
    return subprocess.run(cmd, capture_output=True, text=True, env=env_vars, input=stdin)


def test_cli_dry_run_from_file(tmp_path):
    src = tmp_path / "transcript.txt"
    src.write_text('// a.js\nimport x from "react-native-paper";\n// b.js\nconsole.log(2)\n', encoding="utf-8")
    proc = run_cli([str(src), "--dry-run"])
    assert proc.returncode == 0, proc.stderr
    payload = json.loads(proc.stdout.strip())
    assert payload["ok"] is True
    assert payload["stage"] == "done_dry_run"
    assert payload["job_payload_source"] == f"file:{src}"
    assert {"a.js", "b.js", "App.js"} <= set(payload["files"])
    assert payload["dependencies"]["react-native-paper"] == "^5.12.5"


def test_cli_reads_stdin():
    proc = run_cli(["--dry-run"], stdin="export default 1\n")
    assert proc.returncode == 0, proc.stderr
    payload = json.loads(proc.stdout.strip())
    assert payload["job_payload_source"] == "stdin"
    assert "App.js" in payload["files"]


def test_cli_reports_illegal_path():
    proc = run_cli(["-", "--dry-run"], stdin="// /etc/passwd\nroot\n")
    assert proc.returncode == 1
    payload = json.loads(proc.stdout.strip())
    assert payload["ok"] is False
    assert payload["stage"] == "parse"
    assert payload["error_code"] == "SNACKBUILDER_FAILED_PARSE"
    assert payload["path"] == "/etc/passwd"


def test_cli_requires_bucket_without_dry_run():
    proc = run_cli([], stdin="x\n")
    assert proc.returncode == 1
    payload = json.loads(proc.stdout.strip())
    assert payload["stage"] == "publish"


def test_cli_missing_transcript_file(tmp_path):
    proc = run_cli([str(tmp_path / "nope.txt"), "--dry-run"])
    assert proc.returncode == 1
    payload = json.loads(proc.stdout.strip())
    assert payload["stage"] == "read_input"


def test_dotenv_line_parsing():
    from snackbuilder.cli import _parse_dotenv_line

    assert _parse_dotenv_line("export SNACKBUILDER_S3_BUCKET='my-bucket' # c") == ("SNACKBUILDER_S3_BUCKET", "my-bucket")
    assert _parse_dotenv_line("KEY=value # trailing") == ("KEY", "value")
    assert _parse_dotenv_line("# comment") is None
    assert _parse_dotenv_line("EMPTY=") == ("EMPTY", "")


def test_cli_rejects_blank_transcript():
    proc = run_cli(["--dry-run"], stdin="   \n\n")
    assert proc.returncode == 1
    payload = json.loads(proc.stdout.strip())
    assert payload["ok"] is False
    assert payload["stage"] == "load_job"
    assert "Transcript is empty" in payload["error_message"]


def test_aws_region_falls_back_to_environment(monkeypatch):
    from snackbuilder import cli

    monkeypatch.delenv("AWS_REGION", raising=False)
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    assert cli._discover_aws_region(None) == "eu-west-1"

    monkeypatch.setenv("AWS_REGION", "us-east-2")
    assert cli._discover_aws_region(None) == "us-east-2"
    assert cli._discover_aws_region("ap-south-1") == "ap-south-1"

    monkeypatch.delenv("AWS_REGION")
    monkeypatch.delenv("AWS_DEFAULT_REGION")
    assert cli._discover_aws_region(None) is None
