# CLI package for condbind
"""
Read-only demo CLI.

Commands:
    condbind scenarios     — List demo scenarios
    condbind compare-ages  — if-like age comparison
    condbind paged-read    — while-like paged stream read
    condbind safe-cast     — when-like safe cast dispatch
"""
