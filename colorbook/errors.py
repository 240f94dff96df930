from __future__ import annotations


class ColorbookError(Exception):
    """Base for every failure the generation workflow knows how to report."""

    status_code = 500


class ValidationError(ColorbookError):
    """Bad user input, raised before any network call."""

    status_code = 400


class ProviderRejected(ColorbookError):
    """The provider refused to create a task (bad params, quota, auth)."""

    status_code = 502


class TransportError(ColorbookError):
    """Network failure talking to a provider."""

    status_code = 502


class MalformedResponse(ColorbookError):
    """The provider answered, but not with anything we can use."""

    status_code = 502

