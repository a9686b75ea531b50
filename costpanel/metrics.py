from prometheus_client import Gauge, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST

from .schemas import CostReport

registry = CollectorRegistry()
service_cost_gauge = Gauge(
    "cost_period_total", "Cost for the last requested period by service (USD)", ["service", "period"], registry=registry
)
report_total_gauge = Gauge("cost_report_total", "Summed cost of the last report (USD)", ["period"], registry=registry)
live_data_gauge = Gauge("cost_live_data", "1 when the service figure came from a live API", ["service"], registry=registry)


def record_report(report: CostReport):
    period = report.period.value
    services = {
        "vapi": report.vapi,
        "cloudRun": report.cloud_run,
        "chatwoot": report.chatwoot,
        "openclaw": report.openclaw,
    }
    for service, costs in services.items():
        service_cost_gauge.labels(service=service, period=period).set(costs.total)
        live_data_gauge.labels(service=service).set(1 if costs.is_real_data else 0)
    report_total_gauge.labels(period=period).set(report.total_month)


def scrape_metrics():
    return generate_latest(registry), CONTENT_TYPE_LATEST
