"""
Agent implementations for HotelPulse.

Contains the modules that move reviews through the pipeline:
- Paginated Fetch Client
- Ingestion Agent (dedup + persistence)
- Batch Summarizer
- Analysis Run Coordinator
"""
