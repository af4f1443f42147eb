"""
Pytest suite for the Meat Delivery API.

Test categories:
- Unit tests: validators, pricing helpers, models, provider calls with mocks
- Integration tests: services on in-memory SQLite and the FastAPI app over httpx
"""
