"""Services Layer — session store, agent engine, tools, and the stream encoder.

Invariants:
    - Services own IO; the protocol rules they apply live in core/

Design Decisions:
    - Store and engine are explicit objects injected into routes (ADR: no global handles)
"""
