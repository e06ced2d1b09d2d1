"""
Maternal Triage - Domain.

Extraction, knowledge base, diagnostic reasoning, orchestration, explanation,
privacy, learning and the turn pipeline. Import submodules directly; the
turn pipeline depends on the root configuration, which depends on these.
"""
