"""Core domain package for subrelay.

Core contains filtering, link extraction, the processing pipelines and the
health monitor without any Telegram or HTTP-specific code, keeping the
business logic portable.
"""
