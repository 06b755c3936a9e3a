"""
Node Entry Point Tests
======================

The node is built with a real config directory, then its camera and
transport are swapped for fakes before start().
"""
import json
import unittest.mock as mock

import numpy as np
import pytest

import main
from utils.constants import EXIT_OK, EXIT_DELIVERY_FAILED, EXIT_STARTUP_FAILED
from utils.failures import ConfigError


@pytest.fixture
def configs_dir(tmp_path):
    (tmp_path / "pipeline.json").write_text(json.dumps({"pipeline": {"capture_workers": 1}}))
    return tmp_path


def _node(configs_dir, fake_source, fake_transmitter, frames, outcomes):
    node = main.ImageCarverNode("http://collector.local/ingest", configs_dir=str(configs_dir))
    source = fake_source(frames)
    transmitter = fake_transmitter(outcomes)
    node.frame_source = source
    node.orchestrator.capture_stage.source = source
    node.orchestrator.delivery_stage.transmitter = transmitter
    node.transmitter = mock.Mock()
    return node, transmitter


class TestArgs:

    def test_url_is_the_only_required_argument(self):
        args = main.parse_args(["https://collector.example/ingest"])

        assert args.url == "https://collector.example/ingest"
        assert args.insecure is False
        assert args.video is None

    def test_missing_url_exits(self):
        with pytest.raises(SystemExit):
            main.parse_args([])


class TestNode:

    def test_blank_url_is_a_config_error(self, configs_dir):
        with pytest.raises(ConfigError):
            main.ImageCarverNode("  ", configs_dir=str(configs_dir))

    def test_insecure_flag_reaches_transmitter(self, configs_dir):
        node = main.ImageCarverNode("https://collector.example", configs_dir=str(configs_dir), insecure=True)

        assert node.transmitter.verify_tls is False
        node.stop()

    def test_successful_run(self, configs_dir, fake_source, fake_transmitter):
        node, transmitter = _node(configs_dir, fake_source, fake_transmitter,
                                  [np.ones((8, 8), dtype=np.uint8)], [True])
        try:
            assert node.start()
            assert node.run_once(timeout=5) == EXIT_OK
        finally:
            node.stop()

        assert len(transmitter.sent) == 1
        assert len(node.queue) == 0
        node.transmitter.open.assert_called_once()
        node.transmitter.close.assert_called_once()

    def test_delivery_failure_exit_code_and_retention(self, configs_dir, fake_source, fake_transmitter):
        node, _ = _node(configs_dir, fake_source, fake_transmitter,
                        [np.ones((8, 8), dtype=np.uint8)], [False])
        try:
            node.start()
            assert node.run_once(timeout=5) == EXIT_DELIVERY_FAILED
            assert len(node.queue) == 1
            node.transmitter.close.assert_not_called()
        finally:
            node.stop()

    def test_capture_failure_ends_wait(self, configs_dir, fake_source, fake_transmitter):
        node, transmitter = _node(configs_dir, fake_source, fake_transmitter, [None], [])
        try:
            node.start()
            assert node.run_once(timeout=None) == EXIT_DELIVERY_FAILED
        finally:
            node.stop()

        assert transmitter.sent == []

    def test_stop_is_idempotent(self, configs_dir):
        node = main.ImageCarverNode("http://collector.local", configs_dir=str(configs_dir))
        node.frame_source = mock.Mock()

        node.stop()
        node.stop()

        node.frame_source.stop.assert_called_once()


class TestMain:

    def test_camera_that_cannot_open_is_startup_failure(self, configs_dir):
        with mock.patch("Handlers.Camera_Handler.CameraHandler.start", return_value=False):
            code = main.main(["http://collector.local", "--config", str(configs_dir)])

        assert code == EXIT_STARTUP_FAILED

    def test_bad_config_is_startup_failure(self, tmp_path):
        (tmp_path / "broken.json").write_text("[")

        assert main.main(["http://collector.local", "--config", str(tmp_path)]) == EXIT_STARTUP_FAILED

    @pytest.mark.parametrize("settings", [
        {"encoder": {"jpeg_quality": 150}},
        {"pipeline": {"capture_workers": 0}},
    ])
    def test_out_of_range_setting_is_startup_failure(self, tmp_path, settings):
        (tmp_path / "override.json").write_text(json.dumps(settings))

        assert main.main(["http://collector.local", "--config", str(tmp_path)]) == EXIT_STARTUP_FAILED

    def test_out_of_range_setting_raises_config_error(self, tmp_path):
        (tmp_path / "encoder.json").write_text(json.dumps({"encoder": {"jpeg_quality": -1}}))

        with pytest.raises(ConfigError):
            main.ImageCarverNode("http://collector.local", configs_dir=str(tmp_path))

    def test_delivery_timeout_from_config_is_numeric(self, tmp_path):
        (tmp_path / "pipeline.json").write_text(
            json.dumps({"pipeline": {"capture_workers": 1, "delivery_timeout": "0.5"}})
        )

        with mock.patch.object(main.ImageCarverNode, "start", return_value=True), \
                mock.patch.object(main.ImageCarverNode, "_setup_signal_handlers"), \
                mock.patch.object(main.ImageCarverNode, "run_once", return_value=EXIT_OK) as run_once:
            code = main.main(["http://collector.local", "--config", str(tmp_path)])

        assert code == EXIT_OK
        run_once.assert_called_once_with(timeout=0.5)

    def test_missing_delivery_timeout_waits_without_limit(self, configs_dir):
        with mock.patch.object(main.ImageCarverNode, "start", return_value=True), \
                mock.patch.object(main.ImageCarverNode, "_setup_signal_handlers"), \
                mock.patch.object(main.ImageCarverNode, "run_once", return_value=EXIT_OK) as run_once:
            main.main(["http://collector.local", "--config", str(configs_dir)])

        run_once.assert_called_once_with(timeout=None)
