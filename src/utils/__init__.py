"""
Utility modules for HotelPulse.

Cross-cutting concerns:
- Storage: Durable review store
- LLM: Summarization engine client
- Retry / Cancellation: Backoff policy and run cancellation
- Reporting: Analysis history export
"""
