import json
from pathlib import Path

import pytest
import yaml

from brevskriver_local.cli import BrevskriverCLI
from brevskriver_local.utils.hardware import AccelerationInfo


def make_cli(model_service=None):
    return BrevskriverCLI(
        model_service=model_service,
        capability_probe=lambda: AccelerationInfo(True, "test", "test probe"),
    )


class TestBrevskriverCLI:
    def test_no_command_returns_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert make_cli().run([]) == 1

    def test_scenarios_list(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = make_cli().run(["--data-dir", str(tmp_path), "scenarios", "list"])
        captured = capsys.readouterr()

        assert exit_code == 0
        payload = json.loads(captured.out)
        assert payload["custom"] == "custom"
        assert len(payload["scenarios"]) == 7
        assert payload["scenarios"][0]["key"] == "deadline_extension"

    def test_generate_test_letter_as_text(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = make_cli().run([
            "--data-dir", str(tmp_path),
            "--output-format", "text",
            "generate", "--test",
            "--subject", "Frist",
            "--recipient", "SKAT",
            "--body", "Jeg har brug for mere tid.",
            "--tone", "friendly",
        ])
        captured = capsys.readouterr()

        assert exit_code == 0
        assert captured.out.startswith("Emne: Frist\n\nKære SKAT,")
        assert "De bedste hilsner" in captured.out

    def test_generate_with_model_as_yaml(
        self, tmp_path: Path, model_service, capsys: pytest.CaptureFixture[str]
    ) -> None:
        exit_code = make_cli(model_service).run([
            "--data-dir", str(tmp_path),
            "--output-format", "yaml",
            "generate",
            "--scenario", "deadline_extension",
            "--recipient", "SKAT",
            "--body", "Jeg har brug for mere tid til min årsopgørelse.",
            "--save-history",
        ])
        captured = capsys.readouterr()

        assert exit_code == 0
        result = yaml.safe_load(captured.out)
        assert result["status"] == "ready"
        assert result["history_id"]
        assert result["output"].startswith("Emne: Anmodning om forlængelse af frist")

    def test_generate_with_invalid_fields_fails(
        self, tmp_path: Path, model_service, capsys: pytest.CaptureFixture[str]
    ) -> None:
        exit_code = make_cli(model_service).run([
            "--data-dir", str(tmp_path), "generate", "--subject", "Frist",
        ])
        captured = capsys.readouterr()

        assert exit_code == 1
        assert json.loads(captured.out)["field_errors"]["recipient"] == "recipient required"
        assert "Udfyld de markerede felter" in captured.err
        assert model_service.calls == []

    def test_draft_survives_between_runs(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        cli = make_cli()
        base = ["--data-dir", str(tmp_path)]

        assert cli.run(base + ["draft", "set", "--scenario", "complaint", "--recipient", "Kommunen"]) == 0
        capsys.readouterr()

        assert cli.run(base + ["draft", "show"]) == 0
        draft = json.loads(capsys.readouterr().out)
        assert draft["scenario"] == "complaint"
        assert draft["subject"] == "Klage over afgørelse"
        assert draft["recipient"] == "Kommunen"

        assert cli.run(base + ["draft", "clear"]) == 0
        capsys.readouterr()
        assert cli.run(base + ["draft", "show"]) == 0
        assert json.loads(capsys.readouterr().out)["recipient"] == ""

    def test_profile_set_saves_and_warns(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        cli = make_cli()
        base = ["--data-dir", str(tmp_path)]

        assert cli.run(base + ["profile", "set", "--name", "Olena Hansen", "--email", "not-an-email"]) == 0
        captured = capsys.readouterr()
        assert "Email address looks invalid" in captured.err

        assert cli.run(base + ["profile", "show"]) == 0
        assert json.loads(capsys.readouterr().out)["name"] == "Olena Hansen"

        assert cli.run(base + ["profile", "clear"]) == 0
        capsys.readouterr()
        assert cli.run(base + ["profile", "show"]) == 0
        assert json.loads(capsys.readouterr().out)["name"] == ""

    def test_history_commands(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        cli = make_cli()
        base = ["--data-dir", str(tmp_path)]

        assert cli.run(base + [
            "generate", "--test", "--save-history",
            "--subject", "Frist", "--recipient", "SKAT", "--body", "Jeg har brug for mere tid.",
        ]) == 0
        history_id = json.loads(capsys.readouterr().out)["history_id"]

        assert cli.run(base + ["history", "list"]) == 0
        listing = json.loads(capsys.readouterr().out)
        assert listing["count"] == 1
        assert listing["letters"][0]["id"] == history_id

        assert cli.run(base + ["history", "show", history_id]) == 0
        assert json.loads(capsys.readouterr().out)["subject"] == "Frist"

        assert cli.run(base + ["draft", "clear"]) == 0
        assert cli.run(base + ["history", "load", history_id]) == 0
        capsys.readouterr()
        assert cli.run(base + ["draft", "show"]) == 0
        assert json.loads(capsys.readouterr().out)["subject"] == "Frist"

        assert cli.run(base + ["history", "delete", history_id]) == 0
        assert cli.run(base + ["history", "delete", history_id]) == 1
        assert cli.run(base + ["history", "load", "missing"]) == 1

        assert cli.run(base + ["history", "clear"]) == 0

    def test_export_current_letter(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        cli = make_cli()
        base = ["--data-dir", str(tmp_path / "data")]
        target = tmp_path / "brev.txt"

        assert cli.run(base + ["export", "--format", "txt", "--output", str(target)]) == 1
        assert "Export failed" in capsys.readouterr().err

        cli.run(base + [
            "generate", "--test",
            "--subject", "Frist", "--recipient", "SKAT", "--body", "Jeg har brug for mere tid.",
        ])
        assert cli.run(base + ["export", "--format", "txt", "--output", str(target)]) == 0
        assert target.read_text(encoding="utf-8").startswith("Emne: Frist")

    def test_status_reports_model_and_acceleration(
        self, tmp_path: Path, model_service, capsys: pytest.CaptureFixture[str]
    ) -> None:
        exit_code = make_cli(model_service).run(["--data-dir", str(tmp_path), "status", "--wait", "1"])
        status = json.loads(capsys.readouterr().out)

        assert exit_code == 0
        assert status["ready"] is True
        assert status["acceleration"]["backend"] == "test"
        assert status["endpoint"] == "http://127.0.0.1:11434/v1"

    def test_remote_endpoint_is_rejected(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = make_cli().run([
            "--data-dir", str(tmp_path), "--llm-base-url", "https://api.example.com", "scenarios", "list",
        ])

        assert exit_code == 1
        assert "llm_base_url" in capsys.readouterr().err
