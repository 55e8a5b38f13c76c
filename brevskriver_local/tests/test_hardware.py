from brevskriver_local.utils.hardware import ACCELERATION_ENV, detect_acceleration


def test_force_override_reports_acceleration(monkeypatch):
    monkeypatch.setenv(ACCELERATION_ENV, "force")

    info = detect_acceleration()

    assert info.available
    assert info.backend == "forced"


def test_none_override_reports_no_acceleration(monkeypatch):
    monkeypatch.setenv(ACCELERATION_ENV, "none")

    assert not detect_acceleration().available


def test_probe_without_gpu(monkeypatch):
    monkeypatch.delenv(ACCELERATION_ENV, raising=False)
    monkeypatch.setattr("brevskriver_local.utils.hardware.platform.system", lambda: "Linux")
    monkeypatch.setattr("brevskriver_local.utils.hardware.shutil.which", lambda name: None)
    monkeypatch.setattr("brevskriver_local.utils.hardware.glob.glob", lambda pattern: [])
    monkeypatch.setattr("brevskriver_local.utils.hardware.Path.exists", lambda self: False)

    info = detect_acceleration()

    assert not info.available
    assert info.backend == "none"
