"""Adapters binding the core to Telethon and the subscription HTTP service."""
