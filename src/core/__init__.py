"""Core domain package for livewatch.

Core contains interest aggregation, classification, and reconciliation logic
without any Discord, Twitch or storage-specific code, keeping the business
logic portable.
"""
