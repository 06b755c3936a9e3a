"""
Core module for the ImageCarver pipeline.

Contains the typed messages, the envelope encoder, the hand-off queue,
the pipeline stages, the orchestrator, the event bus and the protocol
definitions (interfaces) implemented by the handlers.
"""
