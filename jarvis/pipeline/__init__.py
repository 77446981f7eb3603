"""Pipeline modules for the Jarvis voice engine.

Each ``*_phase`` module wraps one stage of the utterance pipeline behind a
timeout and a tracing span; ``orchestrator`` composes them per session.
"""
