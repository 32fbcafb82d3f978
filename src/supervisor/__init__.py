"""Webhook ingestion and verification-trigger pipeline.

This package receives GitHub webhook deliveries and drives automated
verification of completed work items:
- HMAC signature validation of inbound deliveries
- Classification of deliveries into projects and trigger decisions
- Durable PostgreSQL event queue with processed/unprocessed tracking
- Background polling processor with bounded verification concurrency
- Verification result reporting as GitHub comments and labels
"""
