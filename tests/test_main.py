import signal
from pathlib import Path

import cv2
import pytest
import yaml
from openpyxl import load_workbook

from frame_logger import main as main_module
from frame_logger.camera.mock_camera import MockCamera
from frame_logger.main import EXIT_FAILURE, EXIT_SUCCESS, FrameLogger, parse_args
from frame_logger.storage.ledger import TimestampLedger

from conftest import FakePreview, ScriptedCamera, ScriptedFrame

RUN_SUFFIX = Path("Gain_0_ExposureTime_150") / "X03_Y03_TopRight" / "LaserDia_9mm"
ENTER = 13


@pytest.fixture
def make_logger(run_config):
    created = []

    def factory(camera, preview, config=None):
        service = FrameLogger(config or run_config, camera=camera, preview=preview)
        created.append(service)
        return service

    yield factory
    for service in created:
        service.close()


def test_end_to_end_three_frames(run_config, make_logger):
    camera = ScriptedCamera(script=[ScriptedFrame(timestamp=ts) for ts in (100, 250, 400)])
    preview = FakePreview(keys=[-1, -1, 13])

    status = make_logger(camera, preview).run()

    image_dir = Path(run_config.image_root) / RUN_SUFFIX
    ledger_path = Path(run_config.timestamp_root) / RUN_SUFFIX / "timestamps.xlsx"
    assert status == EXIT_SUCCESS
    assert sorted(p.name for p in image_dir.iterdir()) == ["frame_0.png", "frame_1.png", "frame_2.png"]
    column = [c.value for c in load_workbook(ledger_path)["Timestamps"]["A"]]
    assert column == ["Timestamps (ns)", 100, 250, 400]
    assert camera.calls[-2:] == ["close", "shutdown"]
    assert camera.features["ExposureTimeAbs"] == 150.0
    assert preview.closed
    assert camera.timeouts == [50] * 3
    assert preview.waits == [1] * 3


def test_end_to_end_all_timeouts(run_config, make_logger):
    camera = ScriptedCamera(script=[])
    preview = FakePreview(keys=[13])

    status = make_logger(camera, preview).run()

    image_dir = Path(run_config.image_root) / RUN_SUFFIX
    ledger_path = Path(run_config.timestamp_root) / RUN_SUFFIX / "timestamps.xlsx"
    assert status == EXIT_SUCCESS
    assert list(image_dir.iterdir()) == []
    assert [c.value for c in load_workbook(ledger_path)["Timestamps"]["A"]] == ["Timestamps (ns)"]


@pytest.mark.parametrize(
    "camera, expected_calls",
    [
        (ScriptedCamera(fail_on=("startup",)), ["startup"]),
        (ScriptedCamera(devices=[]), ["startup", "enumerate", "shutdown"]),
        (ScriptedCamera(fail_on=("open",)), ["startup", "enumerate", "open", "shutdown"]),
        (ScriptedCamera(fail_on=("streams",)),
         ["startup", "enumerate", "open", "resolve_streams", "close", "shutdown"]),
    ],
)
def test_fatal_setup_errors(run_config, make_logger, camera, expected_calls):
    status = make_logger(camera, FakePreview()).run()

    assert status == EXIT_FAILURE
    assert camera.calls == expected_calls
    assert not Path(run_config.timestamp_root).exists()


def test_release_order(run_config, make_logger, monkeypatch):
    camera = ScriptedCamera(script=[ScriptedFrame(timestamp=1)])

    class OrderedPreview(FakePreview):
        def close(self):
            camera.calls.append("preview_close")
            super().close()

    original_close = TimestampLedger.close

    def ledger_close(self):
        if not self.closed:
            camera.calls.append("ledger_close")
        original_close(self)

    monkeypatch.setattr(TimestampLedger, "close", ledger_close)

    status = make_logger(camera, OrderedPreview(keys=[ENTER])).run()

    assert status == EXIT_SUCCESS
    assert camera.calls[-4:] == ["preview_close", "close", "shutdown", "ledger_close"]


def test_preview_error_outside_loop_is_fatal(run_config, make_logger):
    class BrokenPreview(FakePreview):
        def poll_key(self, wait_ms):
            raise cv2.error("The function is not implemented")

    camera = ScriptedCamera(script=[ScriptedFrame(timestamp=1)])
    preview = BrokenPreview()

    status = make_logger(camera, preview).run()

    ledger_path = Path(run_config.timestamp_root) / RUN_SUFFIX / "timestamps.xlsx"
    assert status == EXIT_FAILURE
    assert preview.closed
    assert camera.calls[-2:] == ["close", "shutdown"]
    assert [c.value for c in load_workbook(ledger_path)["Timestamps"]["A"]] == ["Timestamps (ns)", 1]
    assert "Preview window failed" in Path(run_config.log_file).read_text()


def test_circuit_breaker_exit_status(run_config, make_logger):
    run_config.max_consecutive_failures = 3
    camera = ScriptedCamera(script=[ScriptedFrame(timestamp=7)])
    preview = FakePreview()

    status = make_logger(camera, preview).run()

    ledger_path = Path(run_config.timestamp_root) / RUN_SUFFIX / "timestamps.xlsx"
    assert status == EXIT_FAILURE
    assert camera.calls[-2:] == ["close", "shutdown"]
    assert preview.closed
    assert [c.value for c in load_workbook(ledger_path)["Timestamps"]["A"]] == ["Timestamps (ns)", 7]


def test_stop_before_loop_starts(run_config, make_logger):
    service = make_logger(ScriptedCamera(), FakePreview())
    service.stop()

    assert service.run() == EXIT_SUCCESS


def test_mock_backend_from_config(run_config):
    run_config.extra = {"mock_width": 32, "mock_height": 24}
    service = FrameLogger(run_config, preview=FakePreview(keys=[-1, 13]))
    try:
        assert isinstance(service.camera, MockCamera)
        assert service.run() == EXIT_SUCCESS
    finally:
        service.close()

    image_dir = Path(run_config.image_root) / RUN_SUFFIX
    assert sorted(p.name for p in image_dir.iterdir()) == ["frame_0.png", "frame_1.png"]


def test_log_file_written(run_config, make_logger):
    make_logger(ScriptedCamera(), FakePreview(keys=[13])).run()

    log_text = Path(run_config.log_file).read_text()
    assert "Printing general info" in log_text
    assert "Acquisition finished: 0 frames saved" in log_text


def test_parse_args():
    assert parse_args([]).config is None
    assert parse_args(["-c", "lab.yaml"]).config == "lab.yaml"


def test_main_exits_with_failure_without_cameras(tmp_path, monkeypatch):
    monkeypatch.setattr(signal, "signal", lambda *args: None)
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(yaml.safe_dump({
        "camera_backend": "mock",
        "mock_device_count": 0,
        "preview": False,
        "image_root": str(tmp_path / "images"),
        "timestamp_root": str(tmp_path / "timestamps"),
        "log_file": str(tmp_path / "run.log"),
    }))

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["--config", str(cfg)])

    assert excinfo.value.code == EXIT_FAILURE
    assert "No cameras found." in (tmp_path / "run.log").read_text()
