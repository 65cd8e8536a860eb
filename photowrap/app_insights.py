"""
Optional Azure Application Insights telemetry for pipeline runs.

Nothing is exported unless APPLICATIONINSIGHTS_CONNECTION_STRING is set.
"""
import os
from typing import Any, Dict, Optional
from opencensus.ext.azure import metrics_exporter
from opencensus.ext.azure.log_exporter import AzureLogHandler
from opencensus.stats import aggregation as aggregation_module
from opencensus.stats import measure as measure_module
from opencensus.stats import stats as stats_module
from opencensus.stats import view as view_module
from opencensus.tags import tag_map as tag_map_module

from photowrap.error_handling import logger

# name -> (measure class, description, unit, aggregation class)
MEASURES = {
    "assets_scanned": (measure_module.MeasureInt, "Photos found in the requested range", "photos",
                       aggregation_module.SumAggregation),
    "assets_located": (measure_module.MeasureInt, "Photos with usable GPS coordinates", "photos",
                       aggregation_module.SumAggregation),
    "places_created": (measure_module.MeasureInt, "Place clusters kept by the last run", "places",
                       aggregation_module.LastValueAggregation),
    "processing_time": (measure_module.MeasureFloat, "Wall time of the last run", "seconds",
                        aggregation_module.LastValueAggregation),
}


class AppInsights:
    """Records run metrics and forwards package logs to Application Insights."""

    def __init__(self, connection_string: Optional[str] = None):
        self.connection_string = connection_string or os.getenv("APPLICATIONINSIGHTS_CONNECTION_STRING")
        self.enabled = bool(self.connection_string)
        self.measures: Dict[str, Any] = {}

        if self.enabled:
            logger.addHandler(AzureLogHandler(connection_string=self.connection_string))
            self._register_measures()
            logger.info("Application Insights telemetry enabled")
        else:
            logger.debug("Application Insights not configured (missing connection string)")

    def _register_measures(self):
        self.stats = stats_module.stats
        view_manager = self.stats.view_manager

        for name, (measure_cls, description, unit, aggregation_cls) in MEASURES.items():
            measure = measure_cls(name, description, unit)
            view_manager.register_view(
                view_module.View(f"{name}_view", description, [], measure, aggregation_cls())
            )
            self.measures[name] = measure

        view_manager.register_exporter(
            metrics_exporter.new_metrics_exporter(connection_string=self.connection_string)
        )

    def record(self, name: str, value):
        if not self.enabled:
            return

        measure = self.measures[name]
        mmap = self.stats.stats_recorder.new_measurement_map()
        if isinstance(measure, measure_module.MeasureFloat):
            mmap.measure_float_put(measure, float(value))
        else:
            mmap.measure_int_put(measure, int(value))
        mmap.record(tag_map_module.TagMap())
        logger.debug(f"Recorded {name}={value}")

    def track_assets_scanned(self, count: int):
        self.record("assets_scanned", count)

    def track_assets_located(self, count: int):
        self.record("assets_located", count)

    def track_places_created(self, count: int):
        self.record("places_created", count)

    def track_processing_time(self, seconds: float):
        self.record("processing_time", seconds)

    def track_event(self, event_name: str, properties: Optional[dict] = None):
        if self.enabled:
            logger.info(f"Event: {event_name}", extra={"custom_dimensions": properties or {}})

    def track_exception(self, exception: Exception):
        if self.enabled:
            logger.error(f"Run failed: {exception}", exc_info=exception)


# Global instance
app_insights = AppInsights()
