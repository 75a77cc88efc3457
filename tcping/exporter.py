"""Export TCP probe statistics as Prometheus metrics."""

from typing import Optional

from prometheus_client import CollectorRegistry, Gauge, generate_latest, write_to_textfile

from .models import FinalReport


class PrometheusMetricsExporter:
    """Export a final TCP probe report as Prometheus metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up Prometheus metric definitions."""
        # Target metadata
        self.info = Gauge(
            'tcping_info',
            'Probed target, always 1',
            ['hostname', 'address', 'port'],
            registry=self.registry
        )

        # Probe metrics
        self.probes = Gauge(
            'tcping_probes_total',
            'Number of TCP probes by result',
            ['result'],
            registry=self.registry
        )
        self.packet_loss = Gauge(
            'tcping_packet_loss_percent',
            'Percentage of probes that failed',
            [],
            registry=self.registry
        )

        # Availability metrics
        self.uptime = Gauge(
            'tcping_uptime_seconds_total',
            'Cumulative uptime, one second per successful probe',
            [],
            registry=self.registry
        )
        self.downtime = Gauge(
            'tcping_downtime_seconds_total',
            'Cumulative downtime, one second per failed probe',
            [],
            registry=self.registry
        )
        self.longest_streak = Gauge(
            'tcping_longest_streak_seconds',
            'Duration of the longest consecutive up or down streak',
            ['state'],
            registry=self.registry
        )

        # Latency metrics
        self.rtt = Gauge(
            'tcping_rtt_milliseconds',
            'Round-trip time of successful TCP handshakes',
            ['stat'],
            registry=self.registry
        )

        # Run metrics
        self.resolve_retries = Gauge(
            'tcping_resolve_retries_total',
            'Number of successful hostname re-resolutions',
            [],
            registry=self.registry
        )
        self.duration = Gauge(
            'tcping_duration_seconds',
            'Duration of the probing run',
            [],
            registry=self.registry
        )

    def export_report(self, report: FinalReport):
        """Export metrics for a final report."""
        self.info.labels(
            hostname=report.hostname,
            address=report.resolved_address,
            port=str(report.port),
        ).set(1)

        self.probes.labels(result='success').set(report.success_count)
        self.probes.labels(result='failure').set(report.failure_count)
        # Without probes there is no loss to report
        if report.has_data:
            self.packet_loss.set(report.packet_loss)

        self.uptime.set(report.cumulative_up_seconds)
        self.downtime.set(report.cumulative_down_seconds)
        self.longest_streak.labels(state='up').set(report.longest_up_streak.duration_seconds)
        self.longest_streak.labels(state='down').set(report.longest_down_streak.duration_seconds)

        # RTT is only defined once something answered
        if report.rtt.has_data:
            self.rtt.labels(stat='min').set(report.rtt.min)
            self.rtt.labels(stat='avg').set(report.rtt.average)
            self.rtt.labels(stat='max').set(report.rtt.max)

        self.resolve_retries.set(report.total_retries)
        self.duration.set(report.duration_seconds)

    def generate(self) -> bytes:
        """Return the registry in Prometheus text exposition format."""
        return generate_latest(self.registry)

    def write_textfile(self, path: str):
        """Write the registry for the node exporter textfile collector."""
        write_to_textfile(path, self.registry)
