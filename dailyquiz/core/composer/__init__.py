"""
Daily quiz composition engine.

Submodules are imported directly (e.g. dailyquiz.core.composer.orchestrator)
to keep the repositories <-> composer import graph acyclic.
"""
