import json

from pytest_gatekeeper.cli import main
from pytest_gatekeeper.coordinator import GatekeeperCoordinator
from pytest_gatekeeper.state.store import STATE_FILE_NAME


def test_init_show_cleanup(state_dir, capsys):
    assert main(["--dir", str(state_dir), "init"]) == 0
    assert (state_dir / STATE_FILE_NAME).exists()

    GatekeeperCoordinator(state_dir).set_result("api", True)
    capsys.readouterr()

    assert main(["--dir", str(state_dir), "show"]) == 0
    out = capsys.readouterr().out.strip()
    assert out.startswith('{"dependencies":{},"results":{"api":{"passed":true,"timestamp":')
    shown = json.loads(out)
    assert shown["results"]["api"]["passed"] is True
    assert shown["dependencies"] == {}

    assert main(["--dir", str(state_dir), "cleanup"]) == 0
    assert not (state_dir / STATE_FILE_NAME).exists()


def test_summary_prints_counts_and_tree(state_dir, capsys):
    coordinator = GatekeeperCoordinator(state_dir)
    coordinator.initialize()
    coordinator.set_result("api", True)
    coordinator.register_gatekeeper("auth", ["api"])
    coordinator.set_result("auth", False, "bad password")

    assert main(["--dir", str(state_dir), "summary"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Gatekeepers: 2 registered | 1 passed | 1 failed"
    assert out[1:] == ["  api ✓", "  └── auth ✗"]


def test_check_exit_codes(state_dir, capsys):
    coordinator = GatekeeperCoordinator(state_dir)
    coordinator.initialize()
    coordinator.set_result("api", False, "down")
    coordinator.register_gatekeeper("auth", ["api"])
    coordinator.set_result("db", True)

    assert main(["--dir", str(state_dir), "check", "db"]) == 0
    capsys.readouterr()
    assert main(["--dir", str(state_dir), "check", "db", "auth"]) == 1
    assert capsys.readouterr().out.strip() == "dependency 'api' failed: down (chain: auth → api)"


def test_log_file_records_diagnostics(state_dir, tmp_path):
    log_path = tmp_path / "gatekeeper.log"
    assert main(["--dir", str(state_dir), "--log", str(log_path), "init"]) == 0
    text = log_path.read_text(encoding="utf-8")
    assert "initialized" in text
    assert "\x1b" not in text
