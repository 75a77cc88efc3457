from __future__ import annotations

import pytest

pytest.importorskip("snappy")
pytest.importorskip("prometheus_remote_writer.proto.types_pb2")

from conftest import START_MS, ScriptedConnector  # noqa: E402
from tcping import remote_write  # noqa: E402
from tcping.finalizer import finalize  # noqa: E402
from tcping.models import Stats  # noqa: E402
from tcping.prober import Prober  # noqa: E402
from tcping.remote_write import RemoteWriteClient, report_samples  # noqa: E402

WALL_MS = 1_700_000_000_000


def _report(clock, script):
    stats = Stats(hostname="example.test", port=443, resolved_address="192.0.2.10", start_time=START_MS)
    prober = Prober(connector=ScriptedConnector(clock, script), clock=clock)
    for _ in script:
        prober.probe_once(stats)
        clock.advance(1000)
    return finalize(stats, clock)


def _series(write_request):
    series = {}
    for ts in write_request.timeseries:
        labels = {label.name: label.value for label in ts.labels}
        name = labels.pop("__name__")
        series[(name, tuple(sorted(labels.items())))] = [(s.value, s.timestamp) for s in ts.samples]
    return series


def test_report_samples_omit_rtt_without_replies(clock) -> None:
    names = {name for name, _, _ in report_samples(_report(clock, [None]))}

    assert "tcping_rtt_milliseconds" not in names
    assert "tcping_packet_loss_percent" in names


def test_build_write_request_labels_every_series(clock) -> None:
    client = RemoteWriteClient("http://prometheus.invalid/api/v1/write", instance_label="probe-a")

    series = _series(client.build_write_request(_report(clock, [10, None]), WALL_MS))

    key = ("tcping_probes_total", (("instance", "probe-a"), ("result", "failure")))
    assert series[key] == [(1.0, WALL_MS)]
    assert all(dict(labels)["instance"] == "probe-a" for _, labels in series)


def test_dry_run_does_not_post(clock, monkeypatch, tmp_path) -> None:
    def _post(*args, **kwargs):
        raise AssertionError("dry run must not send")

    monkeypatch.setattr(remote_write.requests, "post", _post)
    debug_file = tmp_path / "payload.json"
    client = RemoteWriteClient("http://prometheus.invalid/api/v1/write")

    assert client.send_report(_report(clock, [10]), WALL_MS, dry_run=True, debug_file=str(debug_file))
    assert "tcping_probes_total" in debug_file.read_text(encoding="utf-8")


def test_send_report_posts_compressed_payload(clock, monkeypatch) -> None:
    sent = {}

    class _Response:
        status_code = 204
        text = ""

    def _post(url, data, headers, timeout):
        sent.update(url=url, data=data, headers=headers)
        return _Response()

    monkeypatch.setattr(remote_write.requests, "post", _post)
    client = RemoteWriteClient("http://prometheus.invalid/api/v1/write", {"Authorization": "Bearer x"})

    assert client.send_report(_report(clock, [10]), WALL_MS)
    assert sent["headers"]["Content-Encoding"] == "snappy"
    assert sent["headers"]["Authorization"] == "Bearer x"
    assert remote_write.snappy.decompress(sent["data"])


def test_send_report_fails_on_error_status(clock, monkeypatch, capsys) -> None:
    class _Response:
        status_code = 400
        text = "out of order sample"

    monkeypatch.setattr(remote_write.requests, "post", lambda *args, **kwargs: _Response())
    client = RemoteWriteClient("http://prometheus.invalid/api/v1/write")

    assert not client.send_report(_report(clock, [10]), WALL_MS)
    assert "400 - out of order sample" in capsys.readouterr().err
