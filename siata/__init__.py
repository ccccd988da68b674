"""
SIATA PM2.5 - Ingestion Job Package.

Components:
    - ingestion: SIATA map-layer connector and station normalizer
    - publishing: pm25.json / data.js publisher (S3)
    - monitoring: station name sanitizer and CloudWatch metrics reporter
    - main: retry orchestrator and scheduler entry point
"""
