"""
Race telemetry: normalize OpenF1 timing records and aggregate them into
race summaries and per-driver lap-delta reports.

Entry points:
  - race_telemetry.aggregate.race_summary.summarize_race
  - race_telemetry.aggregate.lap_deltas.driver_lap_deltas
"""
