"""
OpenF1 ingestion package.

  - api_client  one GET per call, typed errors, no cache
  - fetchers    one function per upstream resource (races, sessions, ...)
  - fan_out     concurrent fan-out/join over fetch calls
"""
