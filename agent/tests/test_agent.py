"""
Host Monitor - Tests

Pytest tests for models, metric sources, inventory parsing and export.
"""

import json
from types import SimpleNamespace
from unittest.mock import patch, MagicMock

import pytest


class TestMetricReading:
    """Test MetricReading dataclass."""

    def test_value_reading(self):
        """Test a successful reading."""
        from telemetry.models import MetricReading

        reading = MetricReading(path="cpu.total_percent", value=12.5)

        assert reading.ok is True
        assert reading.error is None
        assert reading.to_dict() == {"path": "cpu.total_percent", "value": 12.5}

    def test_error_reading(self):
        """Test a failed reading carries only an error."""
        from telemetry.models import MetricReading

        reading = MetricReading(path="disk.root.used_percent", error="access denied")

        assert reading.ok is False
        assert reading.value is None
        assert reading.to_dict() == {"path": "disk.root.used_percent", "error": "access denied"}

    def test_requires_exactly_one_of_value_or_error(self):
        """Test value/error exclusivity is enforced."""
        from telemetry.models import MetricReading

        with pytest.raises(ValueError):
            MetricReading(path="x")
        with pytest.raises(ValueError):
            MetricReading(path="x", value=1, error="boom")

    def test_rejects_non_scalar_values(self):
        """Test only numbers and text are accepted as values."""
        from telemetry.models import MetricReading

        with pytest.raises(TypeError):
            MetricReading(path="x", value=[1, 2])
        with pytest.raises(TypeError):
            MetricReading(path="x", value=True)

    def test_zero_is_a_value(self):
        """Test a zero reading is not treated as missing."""
        from telemetry.models import MetricReading

        assert MetricReading(path="x", value=0).ok is True


class TestSample:
    """Test Sample dataclass."""

    def test_sample_is_immutable(self):
        """Test samples cannot be modified after creation."""
        from dataclasses import FrozenInstanceError
        from telemetry.models import MetricReading, Sample

        sample = Sample(timestamp=1000.0, readings=[MetricReading(path="a", value=1)])

        assert isinstance(sample.readings, tuple)
        with pytest.raises(FrozenInstanceError):
            sample.timestamp = 2000.0

    def test_lookup_and_values(self):
        """Test reading lookup by path."""
        from telemetry.models import MetricReading, Sample

        sample = Sample(timestamp=1000.0, readings=(
            MetricReading(path="a", value=1),
            MetricReading(path="b", error="down"),
        ))

        assert sample.get("a").value == 1
        assert sample.get("missing") is None
        assert sample.values() == {"a": 1, "b": None}

    def test_to_dict(self):
        """Test Sample serialisation keeps reading order."""
        from telemetry.models import MetricReading, Sample

        sample = Sample(timestamp=0.0, readings=(
            MetricReading(path="b", value=2),
            MetricReading(path="a", value=1),
        ))
        data = sample.to_dict()

        assert data["timestamp"] == "1970-01-01T00:00:00+00:00"
        assert [r["path"] for r in data["readings"]] == ["b", "a"]


class TestSessionState:
    """Test SessionState enum."""

    def test_state_values(self):
        """Test SessionState enum values."""
        from telemetry.models import SessionState

        assert SessionState.IDLE.value == "idle"
        assert SessionState.RUNNING.value == "running"
        assert SessionState.STOPPING.value == "stopping"
        assert SessionState.STOPPED.value == "stopped"


class TestSessionLimits:
    """Test interval/duration validation."""

    def test_default_ranges(self):
        """Test the default accepted ranges."""
        from telemetry import InvalidConfiguration, SessionLimits

        limits = SessionLimits()
        limits.validate(1, 10)
        limits.validate(3600, 86400)

        for interval, duration in [(0, 60), (3601, 60), (5, 5), (5, 86401)]:
            with pytest.raises(InvalidConfiguration):
                limits.validate(interval, duration)

    def test_rejects_non_integers(self):
        """Test fractional and boolean settings are rejected."""
        from telemetry import InvalidConfiguration, SessionLimits

        with pytest.raises(InvalidConfiguration):
            SessionLimits().validate(1.5, 60)
        with pytest.raises(InvalidConfiguration):
            SessionLimits().validate(True, 60)

    def test_from_config(self):
        """Test limits can be overridden from configuration."""
        from telemetry import SessionLimits

        limits = SessionLimits.from_config({"session": {"limits": {"min_duration": 1}}})

        assert limits.min_duration == 1
        assert limits.max_duration == 86400
        assert SessionLimits.from_config({}) == SessionLimits()

    def test_rejects_unusable_limits(self):
        """Test limits that would allow a zero interval or an empty range are refused."""
        from telemetry import InvalidConfiguration, SessionLimits

        for values in [
            {"min_interval": 0},
            {"min_duration": 0},
            {"min_interval": 10, "max_interval": 5},
            {"min_duration": 100, "max_duration": 50},
        ]:
            with pytest.raises(InvalidConfiguration):
                SessionLimits(**values)

    def test_from_config_rejects_bad_values(self):
        """Test configured limits go through the same checks."""
        from telemetry import InvalidConfiguration, SessionLimits

        with pytest.raises(InvalidConfiguration):
            SessionLimits.from_config({"session": {"limits": {"min_interval": 0}}})
        with pytest.raises(InvalidConfiguration):
            SessionLimits.from_config({"session": {"limits": {"max_duration": "forever"}}})
        with pytest.raises(InvalidConfiguration):
            SessionLimits.from_config({"session": {"limits": {"min_duration": None}}})


class TestSystemSources:
    """Test psutil-backed metric sources."""

    def test_cpu_source(self):
        """Test CPU source primes psutil and reports a percentage."""
        with patch("sources.system.psutil") as mock_psutil:
            from sources.system import CpuPercentSource

            mock_psutil.cpu_percent.return_value = 37.5
            source = CpuPercentSource()

            assert source.path == "cpu.total_percent"
            assert source.sample() == 37.5
            assert mock_psutil.cpu_percent.call_count == 2

    def test_memory_source(self):
        """Test memory fields."""
        with patch("sources.system.psutil") as mock_psutil:
            from sources.system import MemorySource

            mock_psutil.virtual_memory.return_value = SimpleNamespace(
                percent=42.0, available=512 * 1024 * 1024, used=1024 * 1024 * 1024
            )

            assert MemorySource("used_percent").sample() == 42.0
            assert MemorySource("available_mb").sample() == 512.0
            assert MemorySource("used_mb").path == "memory.used_mb"

        with pytest.raises(ValueError):
            MemorySource("bogus")

    def test_disk_source_failure(self):
        """Test disk errors surface as SourceFailure."""
        from telemetry.errors import SourceFailure

        with patch("sources.system.psutil") as mock_psutil:
            from sources.system import DiskUsageSource

            mock_psutil.disk_usage.side_effect = PermissionError("denied")
            source = DiskUsageSource("/mnt/data")

            assert source.path == "disk.mnt_data.used_percent"
            with pytest.raises(SourceFailure):
                source.sample()

    def test_network_rate(self):
        """Test network source reports the delta rate since its last reading."""
        counters = [
            {"eth0": SimpleNamespace(bytes_recv=1000, bytes_sent=0)},
            {"eth0": SimpleNamespace(bytes_recv=3000, bytes_sent=0)},
        ]
        with patch("sources.system.psutil") as mock_psutil, patch("sources.system.time") as mock_time:
            from sources.system import NetworkRateSource

            mock_psutil.net_io_counters.side_effect = counters
            mock_time.monotonic.side_effect = [10.0, 12.0]
            source = NetworkRateSource("eth0", "rx")

            assert source.path == "net.eth0.rx_bytes_per_sec"
            assert source.sample() == 1000.0

    def test_network_missing_interface(self):
        """Test a vanished interface is a per-tick failure."""
        from telemetry.errors import SourceFailure

        with patch("sources.system.psutil") as mock_psutil:
            from sources.system import NetworkRateSource

            mock_psutil.net_io_counters.return_value = {}
            source = NetworkRateSource("wlan0", "tx")

            with pytest.raises(SourceFailure):
                source.sample()

    def test_temperature_without_sensors(self):
        """Test temperature source fails cleanly when no sensor matches."""
        from telemetry.errors import SourceFailure

        with patch("sources.system.psutil") as mock_psutil:
            from sources.system import TemperatureSource

            mock_psutil.sensors_temperatures.return_value = {}
            with pytest.raises(SourceFailure):
                TemperatureSource().sample()

            mock_psutil.sensors_temperatures.return_value = {
                "coretemp": [SimpleNamespace(current=55.0)]
            }
            assert TemperatureSource().sample() == 55.0

    def test_mount_label(self):
        """Test mount point to path segment conversion."""
        from sources.system import mount_label

        assert mount_label("/") == "root"
        assert mount_label("/var/lib") == "var_lib"
        assert mount_label("C:\\") == "C"

    def test_mount_labels_do_not_collide(self):
        """Test distinct mount points keep distinct labels."""
        from sources.system import mount_label

        labels = {mount_label(m) for m in ["/a_b", "/a/b", "/a-b", "/a--b", "/a/_b"]}

        assert len(labels) == 5


class TestSourceRegistry:
    """Test building sources from configuration."""

    def test_build_in_configured_order(self):
        """Test groups are created in order and unknown groups skipped."""
        with patch("sources.system.psutil"):
            from sources import build_sources

            sources = build_sources({"sources": {
                "enabled": ["memory", "bogus", "cpu", "disk"],
                "disks": ["/"],
                "timeout": 3,
            }})

        assert [s.path for s in sources] == [
            "memory.used_percent",
            "memory.available_mb",
            "cpu.total_percent",
            "disk.root.used_percent",
        ]
        assert all(s.timeout == 3 for s in sources)

    def test_network_group(self):
        """Test network group yields rx and tx per interface."""
        with patch("sources.system.psutil"):
            from sources import build_sources

            sources = build_sources({"sources": {"enabled": ["network"], "interfaces": ["eth0"]}})

        assert [s.path for s in sources] == [
            "net.eth0.rx_bytes_per_sec",
            "net.eth0.tx_bytes_per_sec",
        ]

    def test_function_source(self):
        """Test callable adapter."""
        from sources import FunctionSource

        source = FunctionSource("custom.answer", lambda: 42, timeout=1.0)

        assert source.path == "custom.answer"
        assert source.sample() == 42
        assert source.timeout == 1.0

    def test_duplicate_groups_skipped(self):
        """Test a group listed twice yields its sources once."""
        with patch("sources.system.psutil"):
            from sources import build_sources

            sources = build_sources({"sources": {"enabled": ["cpu", "cpu"]}})

        assert [s.path for s in sources] == ["cpu.total_percent"]


class TestServiceParsing:
    """Test systemctl output parsing."""

    def test_parse_units(self):
        """Test service lines are parsed and non-services skipped."""
        from inventory.services import parse_systemctl_units

        output = (
            "ssh.service        loaded active   running OpenBSD Secure Shell server\n"
            "cron.service       loaded inactive dead    Regular background program processing daemon\n"
            "dev-sda1.device    loaded active   plugged /dev/sda1\n"
            "\n"
        )
        services = parse_systemctl_units(output)

        assert [s["name"] for s in services] == ["ssh", "cron"]
        assert services[0]["status"] == "running"
        assert services[0]["display_name"] == "OpenBSD Secure Shell server"
        assert services[1]["active_state"] == "inactive"


class TestProcessListing:
    """Test process listing."""

    def test_sorted_by_cpu(self):
        """Test processes are ordered by CPU and limited."""
        def make_proc(pid, name, cpu, rss):
            proc = MagicMock()
            proc.info = {"pid": pid, "name": name, "username": "root", "status": "running"}
            proc.cpu_percent.return_value = cpu
            proc.memory_info.return_value = SimpleNamespace(rss=rss)
            return proc

        procs = [make_proc(1, "init", 0.5, 1024 * 1024), make_proc(2, "busy", 80.0, 2 * 1024 * 1024),
                 make_proc(3, "idle", 0.0, 0)]

        with patch("inventory.processes.psutil.process_iter", return_value=procs):
            from inventory.processes import list_processes

            rows = list_processes(limit=2, cpu_window=0)

        assert [r["name"] for r in rows] == ["busy", "init"]
        assert rows[0]["memory_mb"] == 2.0

    def test_unknown_sort_key(self):
        """Test invalid sort keys are rejected."""
        from inventory.processes import list_processes

        with pytest.raises(ValueError):
            list_processes(sort_by="bogus")


class TestExportSink:
    """Test JSON export."""

    def _samples(self):
        from telemetry.models import MetricReading, Sample

        return [
            Sample(timestamp=1000.0 + i, readings=(
                MetricReading(path="const", value=42),
                MetricReading(path="broken", error="boom"),
            ))
            for i in range(3)
        ]

    def test_export_samples(self, tmp_path):
        """Test samples are written under the export directory."""
        from export import ExportSink

        sink = ExportSink(tmp_path, hostname="testhost")
        path = sink.export(self._samples())

        assert path.parent == tmp_path
        assert path.name.startswith("samples_testhost_")
        document = json.loads(path.read_text())
        assert document["kind"] == "samples"
        assert document["count"] == 3
        assert document["samples"][0]["readings"][1] == {"path": "broken", "error": "boom"}

    def test_export_to_destination(self, tmp_path):
        """Test explicit file and directory destinations."""
        from export import ExportSink

        sink = ExportSink(tmp_path / "unused", hostname="testhost")

        path = sink.export(self._samples(), destination=tmp_path / "run1")
        assert path == tmp_path / "run1.json"

        subdir = tmp_path / "out"
        subdir.mkdir()
        path = sink.export({"cpu": {"total_percent": 3.0}}, destination=subdir, kind="snapshot")
        assert path.parent == subdir
        assert json.loads(path.read_text())["snapshot"]["cpu"]["total_percent"] == 3.0

    def test_export_errors(self, tmp_path):
        """Test invalid input raises ExportError."""
        from export import ExportSink
        from telemetry.errors import ExportError

        sink = ExportSink(tmp_path)

        with pytest.raises(ExportError):
            sink.export([], kind="csv")
        with pytest.raises(ExportError):
            sink.export(self._samples(), kind="snapshot")
        with pytest.raises(ExportError):
            sink.export([{"not": "a sample"}])

    def test_unwritable_destination(self, tmp_path):
        """Test filesystem failures surface as ExportError."""
        from export import ExportSink
        from telemetry.errors import ExportError

        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        sink = ExportSink(blocker / "exports")

        with pytest.raises(ExportError):
            sink.export(self._samples())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])


class TestSystemSnapshot:
    """Test the ad-hoc system snapshot."""

    @pytest.mark.asyncio
    async def test_failing_section_is_isolated(self):
        """Test one failing section does not blank the others."""
        from inventory import snapshot as snapshot_module

        with patch.object(snapshot_module.psutil, "virtual_memory", side_effect=RuntimeError("no meminfo")), \
                patch.object(snapshot_module, "list_processes", return_value=[]) as mock_list:
            data = await snapshot_module.get_system_snapshot(top_processes=3, include_services=False)

        assert data["memory"] == {"error": "no meminfo"}
        assert "error" not in data["host"]
        assert data["processes"] == []
        assert "services" not in data
        assert "timestamp" in data
        mock_list.assert_called_once_with(3)
