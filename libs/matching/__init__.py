"""Job matching for JobPing.

Prefilter -> AI match -> validate -> fallback. Import stages from their own
modules (``libs.matching.engine``, ``libs.matching.prefilter`` ...).
"""
